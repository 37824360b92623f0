"""Service layer for the CancelMe feed client."""
