"""Background workers for non-blocking book retrieval using Qt threading."""

import asyncio
import logging
from typing import Callable, Optional

from PySide6.QtCore import QObject, QRunnable, Signal, Slot

from pagepal.core import BookAssemblyError, PagePalError
from pagepal.services.retrieval import Retriever

logger = logging.getLogger(__name__)


class WorkerSignals(QObject):
    """
    Signals for communicating results from worker threads.

    QRunnable doesn't inherit from QObject, so we need a separate
    QObject to hold the signals.
    """
    finished = Signal()
    error = Signal(str)
    book_assembled = Signal(object, object)  # Label, Book


class BookAssemblyWorker(QRunnable):
    """
    Worker that assembles a book from a web address in a background thread.

    Each run drives its own event loop and its own Retriever, so the Qt
    thread pool can run several of these side by side.
    """

    def __init__(self, address: str, retriever_factory: Callable[[], Retriever]):
        super().__init__()
        self.address = address
        self.retriever_factory = retriever_factory
        self.signals = WorkerSignals()
        self.setAutoDelete(True)

    @Slot()
    def run(self):
        """Execute book assembly in background thread."""
        try:
            title, book = asyncio.run(self._assemble())
            self.signals.book_assembled.emit(title, book)
        except BookAssemblyError as e:
            logger.warning("Could not assemble %s: %s", self.address, e)
            self.signals.error.emit(e.user_message)
        except PagePalError as e:
            self.signals.error.emit(str(e))
        except Exception as e:
            # Catch any unexpected exceptions not handled by the retriever
            logger.exception("Unexpected error assembling %s", self.address)
            self.signals.error.emit(f"Unexpected retrieval error: {e}")
        finally:
            self.signals.finished.emit()

    async def _assemble(self):
        retriever: Optional[Retriever] = None
        try:
            retriever = self.retriever_factory()
            return await retriever.assemble_new_book(self.address)
        finally:
            if retriever is not None:
                await retriever.aclose()
