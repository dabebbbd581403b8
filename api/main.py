import logging

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from twist_app.services import (
    BuildingModelFactory,
    ComplexModalService,
    GroundWaveFactory,
    ModalService,
    TimeHistoryService,
)
from twist_core.errors import NumericalError, ValidationError
from twist_core.settings import AnalysisOptions, TimeHistoryOptions

logger = logging.getLogger(__name__)

app = FastAPI(title="twist-dynamics")

# local front-end dev servers
origins = [
    "http://127.0.0.1:5173",
    "http://localhost:5173",
    "http://127.0.0.1:5500",
    "http://localhost:5500",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.warning("Rejected %s: %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc), "field": exc.field})


@app.exception_handler(NumericalError)
async def numerical_error_handler(request: Request, exc: NumericalError):
    logger.warning("Analysis failed on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=422, content={"detail": str(exc)})


def _options_payload(payload: dict) -> dict:
    options = payload.get("options") or {}
    if not isinstance(options, dict):
        raise ValidationError("options must be an object.", field="options")
    return options


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/building/modal")
async def calculate_modal_properties(payload: dict):
    model = BuildingModelFactory.from_document(payload.get("model"))
    options = AnalysisOptions.from_dict(_options_payload(payload))
    return ModalService().run(model, options)


@app.post("/building/complex-modal")
async def calculate_complex_modes(payload: dict):
    model = BuildingModelFactory.from_document(payload.get("model"))
    options = AnalysisOptions.from_dict(_options_payload(payload))
    return ComplexModalService().run(model, options)


@app.post("/building/time-history")
async def calculate_time_history(payload: dict):
    model = BuildingModelFactory.from_document(payload.get("model"))
    wave = GroundWaveFactory.from_payload(payload.get("wave"))
    options = TimeHistoryOptions.from_dict(_options_payload(payload))
    return TimeHistoryService().run(model, wave, options)


# === WebSocket: time history streamed in chunks ===
@app.websocket("/ws/time-history")
async def time_history_socket(websocket: WebSocket):
    await websocket.accept()
    try:
        payload = await websocket.receive_json()
        model = BuildingModelFactory.from_document(payload.get("model"))
        wave = GroundWaveFactory.from_payload(payload.get("wave"))
        options = TimeHistoryOptions.from_dict(_options_payload(payload))
        chunk_size = payload.get("chunkSize", 200)
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int):
            raise ValidationError("chunkSize must be an integer.", field="chunkSize")
        async for message in TimeHistoryService().stream(model, wave, options, chunk_size):
            await websocket.send_json(message)
    except WebSocketDisconnect:
        logger.info("Client disconnected.")
        return
    except (ValidationError, NumericalError) as exc:
        logger.warning("Time history stream failed: %s", exc)
        await websocket.send_json({"type": "ERROR", "message": str(exc)})
    await websocket.close()
