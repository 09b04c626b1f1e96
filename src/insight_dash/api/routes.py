from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from insight_dash.config import settings
from insight_dash.config.credentials import CredentialStore
from insight_dash.utils.exceptions import AppException, FileTooLargeError, ParseError
from insight_dash.utils.logger import get_logger

# Import core logic
from insight_dash.core import insights
from insight_dash.core.chart import build_chart_frame
from insight_dash.core.goals import sync_goals
from insight_dash.core.ingestion import ingest_file
from insight_dash.core.kpi import derive_kpis
from insight_dash.core.normalizer import normalize_dataset
from insight_dash.core.session import ChartViewState, ImportSession, SessionStore
from insight_dash.core.visualization import generate_plotly_json
from insight_dash.models import ChartFrame, ChartRequest, Dataset, Goal

logger = get_logger(__name__)


# --- Request Bodies ---
class ColumnEdit(BaseModel):
    type: Optional[str] = None
    description: Optional[str] = None


class BrushRequest(BaseModel):
    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)


class QuestionRequest(BaseModel):
    question: str = Field(..., min_length=1)


class GoalCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    target: float = Field(..., gt=0)
    deadline: date


class ApiKeyRequest(BaseModel):
    api_key: str


# --- Dependencies ---
def get_session(request: Request) -> SessionStore:
    return request.app.state.session


def get_credentials(request: Request) -> CredentialStore:
    return request.app.state.credentials


# --- Serializers ---
def _import_payload(session: ImportSession) -> dict:
    return {
        "import_id": session.id,
        "name": session.dataset.name,
        "rows": session.dataset.row_count,
        "columns": session.dataset.columns,
        "column_meta": {c: m.model_dump() for c, m in session.column_meta.items()},
        "preview": session.preview(),
    }


def _frame_payload(frame: ChartFrame) -> dict:
    return {
        "chart_type": frame.chart_type,
        "x_axis": frame.x_axis,
        "y_axis": frame.y_axis,
        "count": frame.size,
        "points": frame.points,
        "figure": generate_plotly_json(frame),
    }


def _view_payload(view: ChartViewState) -> dict:
    return {
        "settings": view.request.model_dump(exclude={"brush"}),
        "brush": view.brush.model_dump() if view.brush else None,
    }


def _kpis_for(dataset: Dataset):
    return derive_kpis(normalize_dataset(dataset))


def create_app(
    session: Optional[SessionStore] = None,
    credentials: Optional[CredentialStore] = None,
) -> FastAPI:
    """Build the API with its own session and credential stores."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        docs_url="/docs"
    )
    app.state.session = session or SessionStore()
    app.state.credentials = credentials or CredentialStore()

    @app.exception_handler(AppException)
    async def handle_app_exception(request: Request, exc: AppException):
        body = {"detail": exc.message}
        if isinstance(exc, ParseError):
            body["format"] = exc.file_format
            body["issues"] = [i.to_dict() for i in exc.issues]
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "online", "message": f"{settings.APP_NAME} API is running"}

    # --- Imports ---
    @app.post("/imports")
    async def upload_file(file: UploadFile = File(...), store: SessionStore = Depends(get_session)):
        """
        Parses an uploaded CSV / JSON / Excel file into a pending import with
        inferred column metadata and a preview.
        """
        logger.info(f"Received file upload: {file.filename}")
        content = await file.read()
        size_mb = len(content) / (1024 * 1024)
        if size_mb > settings.MAX_UPLOAD_SIZE_MB:
            raise FileTooLargeError(size_mb, settings.MAX_UPLOAD_SIZE_MB)
        dataset = ingest_file(content, file.filename or "upload.csv", file.content_type)
        pending = store.start_import(dataset)
        payload = _import_payload(pending)
        if dataset.is_empty:
            payload["warning"] = "The file contains no rows or no columns."
        return payload

    @app.get("/imports/{import_id}")
    async def get_import(import_id: str, store: SessionStore = Depends(get_session)):
        return _import_payload(store.get_import(import_id))

    @app.patch("/imports/{import_id}/columns/{column}")
    async def edit_column(
        import_id: str,
        column: str,
        edit: ColumnEdit,
        store: SessionStore = Depends(get_session),
    ):
        pending = store.get_import(import_id)
        if edit.type is not None:
            pending.set_column_type(column, edit.type)
        if edit.description is not None:
            pending.set_column_description(column, edit.description)
        return _import_payload(pending)

    @app.post("/imports/{import_id}/commit")
    async def commit_import(import_id: str, store: SessionStore = Depends(get_session)):
        return store.commit_import(import_id).summary()

    # --- Datasets ---
    @app.get("/datasets")
    async def list_datasets(store: SessionStore = Depends(get_session)):
        return [d.summary() for d in store.list()]

    @app.get("/datasets/{dataset_id}")
    async def get_dataset(dataset_id: str, store: SessionStore = Depends(get_session)):
        return store.get(dataset_id).summary()

    @app.delete("/datasets/{dataset_id}")
    async def delete_dataset(dataset_id: str, store: SessionStore = Depends(get_session)):
        return {"deleted": store.remove(dataset_id).id}

    @app.get("/datasets/{dataset_id}/kpis")
    async def get_kpis(dataset_id: str, store: SessionStore = Depends(get_session)):
        return [k.model_dump() for k in _kpis_for(store.get(dataset_id))]

    # --- Charts ---
    @app.post("/datasets/{dataset_id}/chart")
    async def chart(dataset_id: str, request: ChartRequest, store: SessionStore = Depends(get_session)):
        """Stateless chart frame for the given settings."""
        return _frame_payload(build_chart_frame(store.get(dataset_id), request))

    @app.get("/datasets/{dataset_id}/view")
    async def get_view(dataset_id: str, store: SessionStore = Depends(get_session)):
        return _view_payload(store.view(dataset_id))

    @app.patch("/datasets/{dataset_id}/view")
    async def update_view(dataset_id: str, changes: dict, store: SessionStore = Depends(get_session)):
        view = store.view(dataset_id)
        view.update(**changes)
        return _view_payload(view)

    @app.put("/datasets/{dataset_id}/view/brush")
    async def set_brush(dataset_id: str, brush: BrushRequest, store: SessionStore = Depends(get_session)):
        view = store.view(dataset_id)
        view.set_brush(brush.start, brush.end)
        return _view_payload(view)

    @app.delete("/datasets/{dataset_id}/view/brush")
    async def reset_brush(dataset_id: str, store: SessionStore = Depends(get_session)):
        view = store.view(dataset_id)
        view.reset_brush()
        return _view_payload(view)

    @app.get("/datasets/{dataset_id}/view/chart")
    async def view_chart(dataset_id: str, store: SessionStore = Depends(get_session)):
        return _frame_payload(store.view(dataset_id).frame())

    # --- AI collaborator ---
    @app.post("/datasets/{dataset_id}/insights")
    async def dataset_insights(
        dataset_id: str,
        store: SessionStore = Depends(get_session),
        creds: CredentialStore = Depends(get_credentials),
    ):
        dataset = store.get(dataset_id)
        return {"insights": insights.generate_insights(dataset, _kpis_for(dataset), creds)}

    @app.post("/datasets/{dataset_id}/chat")
    async def chat(
        dataset_id: str,
        payload: QuestionRequest,
        store: SessionStore = Depends(get_session),
        creds: CredentialStore = Depends(get_credentials),
    ):
        dataset = store.get(dataset_id)
        answer = insights.answer_question(dataset, _kpis_for(dataset), payload.question, creds)
        return {"question": payload.question, "answer": answer}

    @app.get("/datasets/{dataset_id}/chart-suggestion")
    async def chart_suggestion(
        dataset_id: str,
        store: SessionStore = Depends(get_session),
        creds: CredentialStore = Depends(get_credentials),
    ):
        return {"chart_type": insights.predict_chart_type(store.get(dataset_id), creds)}

    @app.post("/datasets/{dataset_id}/kpis/recommendations")
    async def kpi_recommendations(
        dataset_id: str,
        store: SessionStore = Depends(get_session),
        creds: CredentialStore = Depends(get_credentials),
    ):
        kpis = _kpis_for(store.get(dataset_id))
        return {"recommendations": insights.generate_kpi_recommendations(kpis, creds)}

    # --- Goals ---
    @app.get("/datasets/{dataset_id}/goals")
    async def list_goals(dataset_id: str, store: SessionStore = Depends(get_session)):
        kpis = _kpis_for(store.get(dataset_id))
        goals = store.set_goals(dataset_id, sync_goals(store.goals(dataset_id), kpis))
        return [g.model_dump(mode="json") for g in goals]

    @app.post("/datasets/{dataset_id}/goals")
    async def create_goal(dataset_id: str, payload: GoalCreate, store: SessionStore = Depends(get_session)):
        kpis = _kpis_for(store.get(dataset_id))
        goal = sync_goals([Goal(**payload.model_dump())], kpis)[0]
        return store.add_goal(dataset_id, goal).model_dump(mode="json")

    @app.post("/datasets/{dataset_id}/goals/{goal_id}/insight")
    async def goal_insight(
        dataset_id: str,
        goal_id: str,
        store: SessionStore = Depends(get_session),
        creds: CredentialStore = Depends(get_credentials),
    ):
        dataset = store.get(dataset_id)
        goal = store.get_goal(dataset_id, goal_id)
        text = insights.generate_goal_insight(goal, dataset, creds)
        updated = store.update_goal(dataset_id, goal.model_copy(update={"insight": text}))
        return updated.model_dump(mode="json")

    # --- Settings ---
    @app.get("/settings/api-key")
    async def api_key_status(creds: CredentialStore = Depends(get_credentials)):
        return {"configured": creds.has_api_key()}

    @app.put("/settings/api-key")
    async def save_api_key(payload: ApiKeyRequest, creds: CredentialStore = Depends(get_credentials)):
        creds.set_api_key(payload.api_key)
        return {"configured": creds.has_api_key()}

    return app


app = create_app()
