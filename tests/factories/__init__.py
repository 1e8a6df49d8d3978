from tests.factories.project import ProjectFactory

__all__ = ["ProjectFactory"]
