"""
WebSocket Handler for deck generation.

One pipeline run at a time per connection. Each run streams a `status`
message per stage and ends with exactly one of `result`, `error` or
`cancelled`. A `cancel` message (or a disconnect) cancels the task running
the pipeline, which cancels the in-flight text service call.
"""

import json
import asyncio
from typing import Any, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from src.agents.generation_pipeline import GenerationPipeline, PipelineContext
from src.core.errors import ContractViolationError, PipelineError
from src.models.generation import GenerationRequest
from src.models.pipeline_record import PipelineRecord
from src.models.websocket_messages import (
    ClientMessageType,
    ServerMessage,
    GenerateCommand,
    create_cancelled,
    create_error,
    create_result,
    create_status_update,
)
from src.utils.logger import setup_logger

logger = setup_logger(__name__)


class WebSocketHandler:
    """
    Drives GenerationPipeline runs over a WebSocket.

    The PipelineContext is shared by every connection; per-connection state
    (the running task and its record) lives in handle_connection.
    """

    def __init__(self, context: PipelineContext):
        self.context = context
        self.pipeline = GenerationPipeline(context)

    async def handle_connection(self, websocket: WebSocket):
        """
        Handle a WebSocket connection until the client disconnects.

        Args:
            websocket: FastAPI WebSocket (not yet accepted)
        """
        await websocket.accept()
        logger.info("WebSocket connected")

        task: Optional[asyncio.Task] = None
        record: Optional[PipelineRecord] = None

        try:
            while True:
                raw_data = await websocket.receive_text()

                try:
                    data = json.loads(raw_data)
                except json.JSONDecodeError:
                    await self._send(websocket, create_error("invalid_message", "Message is not valid JSON"))
                    continue
                if not isinstance(data, dict):
                    await self._send(websocket, create_error("invalid_message", "Message must be a JSON object"))
                    continue

                message_type = data.get('type')

                if message_type == ClientMessageType.PING.value:
                    await websocket.send_json({'type': 'pong'})

                elif message_type == ClientMessageType.GENERATE.value:
                    if task is not None and not task.done():
                        await self._send(websocket, create_error("run_in_progress", "A generation is already running"))
                        continue
                    try:
                        command = GenerateCommand.model_validate(data)
                    except ValidationError as e:
                        await self._send(websocket, create_error("invalid_request", self._describe(e)))
                        continue

                    record = PipelineRecord()
                    task = asyncio.create_task(self._run(websocket, command.request, record))

                elif message_type == ClientMessageType.CANCEL.value:
                    if task is not None and task.cancel():
                        await asyncio.gather(task, return_exceptions=True)
                        await self._send(websocket, create_cancelled(record.request_id, record.to_dict()))
                    else:
                        await self._send(websocket, create_error("no_active_run", "Nothing to cancel"))

                else:
                    logger.warning(f"Unknown message type: {message_type}")
                    await self._send(websocket, create_error("invalid_message", f"Unknown message type: {message_type}"))

        except WebSocketDisconnect:
            logger.info("WebSocket disconnected")

        finally:
            if task is not None and not task.done():
                logger.info("Cancelling generation for closed connection")
                task.cancel()
            if task is not None:
                await asyncio.gather(task, return_exceptions=True)

    async def _run(self, websocket: WebSocket, request: GenerationRequest, record: PipelineRecord):
        """Run the pipeline once and send its terminal message."""

        async def on_stage(stage: str, detail: Dict[str, Any]) -> None:
            await self._send(websocket, create_status_update(stage, detail))

        try:
            result = await self.pipeline.run(request, on_stage=on_stage, record=record)
        except PipelineError as e:
            await self._send(websocket, create_error(e.code.value, e.message, record.to_dict()))
            return
        except ContractViolationError as e:
            await self._send(websocket, create_error("internal_error", str(e), record.to_dict()))
            return
        except Exception as e:
            logger.exception(f"Generation failed unexpectedly: {e}", request_id=record.request_id)
            await self._send(websocket, create_error("internal_error", "Generation failed unexpectedly", record.to_dict()))
            return

        await self._send(websocket, create_result(result.document.to_wire(), result.record.to_dict()))

    @staticmethod
    async def _send(websocket: WebSocket, message: ServerMessage):
        await websocket.send_json(message.model_dump(mode='json'))

    @staticmethod
    def _describe(error: ValidationError) -> str:
        return "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in error.errors()
        )
