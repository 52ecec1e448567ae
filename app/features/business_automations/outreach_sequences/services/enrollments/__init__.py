from .crud_services import EnrollmentService

__all__ = ["EnrollmentService"]
