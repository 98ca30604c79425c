"""ODR Lab backend: profiles, idea workflow and collaboration API."""

__version__ = "1.0.0"
