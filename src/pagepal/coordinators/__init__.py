"""Coordinators layer - library-level orchestration for front ends."""

from pagepal.coordinators.library_coordinator import LibraryCoordinator

__all__ = ["LibraryCoordinator"]
