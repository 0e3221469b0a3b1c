"""Generator module - renders scaffolded projects to disk."""

from .project import ProjectGenerator, next_steps

__all__ = ["ProjectGenerator", "next_steps"]
