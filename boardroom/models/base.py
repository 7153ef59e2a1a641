"""
WorkspaceModel: abstract base class for workspace-scoped models.

All board and knowledge tables belong to exactly one workspace. This adds:
  - workspace_id column with index
  - query_for_workspace(workspace_id) classmethod
  - Composite index macro helper
"""

from boardroom.models import db


class WorkspaceModel(db.Model):
    """Abstract base for workspace-scoped tables."""
    __abstract__ = True

    workspace_id = db.Column(db.String(64), nullable=False, index=True)

    @classmethod
    def query_for_workspace(cls, workspace_id):
        """Return a query filtered by workspace_id."""
        return cls.query.filter_by(workspace_id=workspace_id)

    @classmethod
    def workspace_composite_index(cls, table_name, *extra_cols):
        """Helper to build (workspace_id, ...) composite index name+tuple."""
        name = f"ix_{table_name}_workspace_{'_'.join(extra_cols)}"
        cols = ("workspace_id",) + extra_cols
        return db.Index(name, *cols)
