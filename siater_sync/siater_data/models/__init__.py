from .catalog import AttributeTaxonomy, Product, ProductAttribute, ProductImage, Term, VariationAttribute
from .cleanup_state import CleanupCycleState
from .sync_cursor import SyncCursor
