from mpi_mediator.controller import Controller
from mpi_mediator.process_bundle.request import ProcessBundleRequest


class ProcessBundleHandler:
    @classmethod
    def _controller(cls, request: ProcessBundleRequest) -> Controller | None:
        try:
            return Controller()
        except Exception as e:
            request.set_negative_response(f"Failed to initialize controller: {e}")
            return None

    @classmethod
    def handle_sync(cls, request: ProcessBundleRequest) -> None:
        controller = cls._controller(request)
        if controller is None:
            return

        outcome = controller.validate(request.resource)
        if outcome.succeeded:
            outcome = controller.resolve_and_write(request.resource)

        request.set_response_from_outcome(outcome, controller.config.mediator_urn)

    @classmethod
    def handle_async(cls, request: ProcessBundleRequest) -> None:
        controller = cls._controller(request)
        if controller is None:
            return

        outcome = controller.resolve_and_accept(request.resource)
        request.set_response_from_outcome(outcome, controller.config.mediator_urn)

    @classmethod
    def handle_validate(cls, request: ProcessBundleRequest) -> None:
        controller = cls._controller(request)
        if controller is None:
            return

        outcome = controller.validate(request.resource)
        request.set_response_from_outcome(outcome, controller.config.mediator_urn)
