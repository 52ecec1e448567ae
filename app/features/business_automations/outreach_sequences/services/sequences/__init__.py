from .crud_services import SequenceCrudService

__all__ = ["SequenceCrudService"]
