"""
ODR Lab – SQLAlchemy ORM models package.

Imports all model classes so the app can discover them
through a single ``import odrlab.models``.
"""

from odrlab.models.user import User, UserRole                        # noqa: F401
from odrlab.models.innovator import Innovator                       # noqa: F401
from odrlab.models.mentor import Mentor, MentorType                 # noqa: F401
from odrlab.models.faculty import Faculty                           # noqa: F401
from odrlab.models.other import Other                               # noqa: F401
from odrlab.models.idea_submission import IdeaSubmission            # noqa: F401
from odrlab.models.idea import Idea                                 # noqa: F401
from odrlab.models.idea_membership import IdeaCollaborator, IdeaMentor  # noqa: F401
from odrlab.models.comment import Comment, Like                     # noqa: F401
from odrlab.models.audit_log import AuditLog                        # noqa: F401
