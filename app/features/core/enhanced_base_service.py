"""Enhanced BaseService with common query patterns and utilities."""

from typing import Any, Dict, List, Optional, Generic, TypeVar
from sqlalchemy.ext.asyncio import AsyncSession
from app.features.core.sqlalchemy_imports import *

T = TypeVar('T')


class TenantFilterError(Exception):
    """Raised when a query is missing required tenant filtering."""
    pass


class BaseService(Generic[T]):
    """
    Base service with common patterns for async SQLAlchemy services.

    Provides:
    - Tenant-scoped queries with automatic validation
    - Common query builders
    - Consistent logging and error handling

    System-wide access:
    - When tenant_id="global" is passed, it's converted to None
    - When tenant_id is None, NO tenant filter is applied (scheduler sweeps see all data)
    - Validation is automatically skipped for system-wide services
    """

    def __init__(self, db_session: AsyncSession, tenant_id: Optional[str] = None):
        """
        Initialize service with database session and tenant context.

        Args:
            db_session: SQLAlchemy async session
            tenant_id: Tenant ID for scoping queries, or "global" for system-wide access
        """
        self.db = db_session
        self.tenant_id = None if tenant_id == "global" else tenant_id
        self.logger = get_logger(self.__class__.__name__)
        self.is_global = self.tenant_id is None

    # === QUERY BUILDERS ===

    def create_base_query(self, model_class: type[T]) -> Select:
        """
        Create base SELECT query with tenant filtering.

        Args:
            model_class: SQLAlchemy model class

        Returns:
            Select statement filtered to the service tenant (unfiltered when global)
        """
        stmt = select(model_class)
        if self.tenant_id is not None and hasattr(model_class, 'tenant_id'):
            stmt = stmt.where(model_class.tenant_id == self.tenant_id)
        return stmt

    def apply_tenant_filter(self, stmt: Select, model_class: type[T]) -> Select:
        """Add the tenant filter for model_class to an arbitrary statement."""
        if self.tenant_id is not None and hasattr(model_class, 'tenant_id'):
            stmt = stmt.where(model_class.tenant_id == self.tenant_id)
        return stmt

    def apply_search_filters(self, stmt: Select, model_class: type[T],
                             search_term: str, search_fields: List[str]) -> Select:
        """Apply case-insensitive search filters to multiple fields."""
        if not search_term or not search_fields:
            return stmt

        search_pattern = f"%{search_term}%"
        conditions = []

        for field_name in search_fields:
            if hasattr(model_class, field_name):
                field = getattr(model_class, field_name)
                conditions.append(field.ilike(search_pattern))

        if conditions:
            stmt = stmt.where(or_(*conditions))

        return stmt

    # === CRUD OPERATIONS ===

    async def get_by_id(self, model_class: type[T], item_id: str,
                        load_relationships: List[str] = None) -> Optional[T]:
        """Get item by ID with optional relationship loading."""
        try:
            stmt = self.create_base_query(model_class).where(model_class.id == item_id)

            if load_relationships:
                for rel in load_relationships:
                    if hasattr(model_class, rel):
                        stmt = stmt.options(selectinload(getattr(model_class, rel)))

            result = await self.execute(stmt, model_class)
            return result.scalar_one_or_none()

        except Exception as e:
            self.logger.error("Failed to get item by ID",
                              model=model_class.__name__, item_id=item_id, error=str(e))
            raise

    # === QUERY EXECUTION ===

    def _has_tenant_filter(self, stmt: Select, model_class: type[T]) -> bool:
        """
        Check if a SELECT statement includes tenant_id filtering.

        Best-effort check on the compiled SQL text.
        """
        if not hasattr(model_class, 'tenant_id'):
            return True

        try:
            stmt_str = str(stmt.compile(compile_kwargs={"literal_binds": True}))
        except Exception:
            stmt_str = str(stmt)

        return "tenant_id" in stmt_str.lower()

    async def execute(
        self,
        stmt: Select,
        model_class: type[T],
        allow_cross_tenant: bool = False,
        reason: Optional[str] = None
    ):
        """
        Execute query with mandatory tenant filter validation.

        System-wide services skip validation. Tenant-scoped services must
        include a tenant filter, or explicitly bypass it with a reason.

        Raises:
            TenantFilterError: If tenant filter is missing
            ValueError: If allow_cross_tenant=True but reason is not provided
        """
        if self.is_global:
            return await self.db.execute(stmt)

        if allow_cross_tenant:
            if not reason:
                raise ValueError(
                    "Cross-tenant query requires 'reason' parameter for audit logging. "
                    f"Model: {model_class.__name__}, Tenant: {self.tenant_id}"
                )

            self.logger.warning(
                "Cross-tenant query executed (explicit bypass)",
                model=model_class.__name__,
                tenant_id=self.tenant_id,
                reason=reason,
                service=self.__class__.__name__,
            )
            return await self.db.execute(stmt)

        if not self._has_tenant_filter(stmt, model_class):
            self.logger.error(
                "Query missing required tenant filter",
                model=model_class.__name__,
                tenant_id=self.tenant_id,
                service=self.__class__.__name__,
            )
            raise TenantFilterError(
                f"Query for {model_class.__name__} is missing tenant filter! "
                f"Current tenant: {self.tenant_id}. "
                f"Use create_base_query() or apply_tenant_filter(), "
                f"or set allow_cross_tenant=True with a reason"
            )

        return await self.db.execute(stmt)

    # === LOGGING & ERROR HANDLING ===

    def log_operation(self, operation: str, details: Dict[str, Any] = None):
        """Standardized operation logging."""
        log_data = {
            "operation": operation,
            "service": self.__class__.__name__,
            "tenant_id": self.tenant_id or "global"
        }
        if details:
            log_data.update(details)

        self.logger.info("Service operation", **log_data)

    async def handle_error(self, operation: str, error: Exception, **context):
        """Standardized error handling with rollback."""
        await self.db.rollback()

        self.logger.error("Service operation failed",
                          operation=operation,
                          service=self.__class__.__name__,
                          tenant_id=self.tenant_id or "global",
                          error=str(error),
                          **context)
        raise error
