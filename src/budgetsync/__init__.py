"""budgetsync - Bank transaction import, categorization and ledger submission."""

__version__ = "0.1.0"

# The domain package has to finish loading before the database layer, which
# imports its entities.
from budgetsync import domain  # noqa: E402,F401


# Import main lazily to avoid circular dependencies
def __getattr__(name):
    if name == "main":
        from budgetsync.cli.main import main
        return main
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
