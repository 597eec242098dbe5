from __future__ import annotations
"""Request boundary that runs controller operations and maps their errors."""
from dataclasses import dataclass
import logging
import threading
from typing import Callable

from .controller import ImageStoreController
from .ingest import ValidationError
from .services import StorageError

RunnerFn = Callable[[Callable[[], None]], None]
SuccessFn = Callable[[object], None]

LOGGER = logging.getLogger(__name__)

CLIENT_ERROR = 400
SERVER_ERROR = 500
INTERNAL_ERROR_MESSAGE = "internal server error"


@dataclass(frozen=True)
class OperationError:
    """Caller facing failure: an HTTP-like status plus a safe message."""

    status: int
    message: str

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500


ErrorFn = Callable[[OperationError], None]


def _start_thread(task: Callable[[], None]) -> None:
    threading.Thread(target=task, daemon=True).start()


class ImageStorePresenter:
    """Runs operations in the background and reports via callbacks.

    Validation failures become client errors, storage failures become server
    errors, and anything else is logged and reported without detail.
    """

    def __init__(
        self,
        controller: ImageStoreController,
        *,
        runner: RunnerFn | None = None,
    ) -> None:
        self._controller = controller
        self._runner = runner or _start_thread

    def list_images(self, *, prefix: str = "", on_success: SuccessFn, on_error: ErrorFn) -> None:
        if prefix:
            operation = lambda: self._controller.list_images_under_prefix(prefix)
        else:
            operation = self._controller.list_all_images
        self._run("list images", operation, on_success, on_error)

    def list_folders(self, *, on_success: SuccessFn, on_error: ErrorFn) -> None:
        def operation() -> list[dict[str, object]]:
            return [folder.to_dict() for folder in self._controller.list_image_folders()]

        self._run("list folders", operation, on_success, on_error)

    def get_image(self, *, name: str, on_success: SuccessFn, on_error: ErrorFn) -> None:
        self._run(f"get '{name}'", lambda: self._controller.get_image(name), on_success, on_error)

    def insert_image(
        self,
        *,
        name: str,
        payload: bytes,
        mime_type: str | None = None,
        on_success: SuccessFn,
        on_error: ErrorFn,
    ) -> None:
        self._run(
            f"insert '{name}'",
            lambda: self._controller.insert_image(name, payload, mime_type),
            on_success,
            on_error,
        )

    def delete_image(self, *, name: str, on_success: SuccessFn, on_error: ErrorFn) -> None:
        self._run(f"delete '{name}'", lambda: self._controller.delete_image(name), on_success, on_error)

    def _run(
        self,
        label: str,
        operation: Callable[[], object],
        on_success: SuccessFn,
        on_error: ErrorFn,
    ) -> None:
        LOGGER.debug("Starting %s", label)

        def task() -> None:
            try:
                result = operation()
            except ValidationError as exc:
                LOGGER.info("Rejected %s: %s", label, exc)
                on_error(OperationError(CLIENT_ERROR, str(exc)))
            except StorageError as exc:
                LOGGER.exception("Storage error during %s", label)
                on_error(OperationError(SERVER_ERROR, str(exc)))
            except Exception:
                LOGGER.exception("Unexpected error during %s", label)
                on_error(OperationError(SERVER_ERROR, INTERNAL_ERROR_MESSAGE))
            else:
                LOGGER.debug("Finished %s", label)
                on_success(result)

        self._runner(task)
