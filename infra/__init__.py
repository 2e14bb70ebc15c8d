"""GitOps platform infrastructure."""
