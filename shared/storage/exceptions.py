from shared.models.document import Document


class DuplicateDetected(Exception):
    """Raised when an insert collides with an active document of identical content."""

    def __init__(self, existing: Document):
        super().__init__(f"Identical content already stored as '{existing.display_name}' ({existing.id}).")
        self.existing = existing


class NotFound(Exception):
    """Raised when a referenced document or folder does not exist."""
