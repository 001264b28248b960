"""
SQL Visualizer FastAPI Backend
Main application entry point
"""
import logging
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from sql_visualizer.config import AppSettings, get_settings
from sql_visualizer.debug import DebugLogger
from sql_visualizer.exceptions import ParseError
from sql_visualizer.flow_graph import FlowGraphBuilder
from sql_visualizer.messages import MessageChannel
from sql_visualizer.models import QueryRequest, UIStatePatch
from sql_visualizer.store import VisualizationStore

logger = logging.getLogger(__name__)

API_NAME = 'SQL Visualizer API'
API_VERSION = '1.0.0'


def create_app(
    store: Optional[VisualizationStore] = None,
    settings: Optional[AppSettings] = None,
) -> FastAPI:
    """Build the API around one store; tests pass their own store."""
    settings = settings or get_settings()
    if settings.debug_trace:
        DebugLogger.enable()
    if store is None:
        store = VisualizationStore(storage=settings.create_storage())

    app = FastAPI(title=API_NAME, version=API_VERSION)

    # CORS middleware for the embedding page
    app.add_middleware(
        CORSMiddleware,
        allow_origins=['*'],
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    flow_graph = FlowGraphBuilder()
    channel = MessageChannel(store)
    app.state.store = store
    app.state.flow_graph = flow_graph

    @app.get('/api/')
    async def api_root():
        return {'message': API_NAME, 'version': API_VERSION}

    @app.get('/api/state')
    async def get_state():
        """Current visualizer state"""
        return store.snapshot()

    @app.put('/api/query')
    async def set_query(request: QueryRequest):
        """Replace the query text; re-parses when auto layout is on"""
        store.set_query(request.query)
        return store.snapshot()

    @app.post('/api/query/parse')
    async def parse_query():
        store.parse_query()
        return store.snapshot()

    @app.post('/api/parse')
    async def parse(request: QueryRequest):
        """Extract the structural graph of a query without touching the store"""
        try:
            return store.extractor.parse(request.query).to_json()
        except ParseError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @app.patch('/api/settings')
    async def update_settings(patch: Dict[str, Any] = Body(...)):
        """Merge a partial settings update"""
        try:
            store.set_settings(patch)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
        return store.snapshot()

    @app.patch('/api/ui')
    async def update_ui(patch: UIStatePatch):
        """Toggle the settings panel, edit mode or node selection"""
        supplied = patch.model_dump(exclude_unset=True)
        if supplied.get('show_settings') is not None:
            store.set_show_settings(supplied['show_settings'])
        if supplied.get('is_editing') is not None:
            store.set_is_editing(supplied['is_editing'])
        if 'selected_node' in supplied:
            store.set_selected_node(supplied['selected_node'])
        return store.snapshot()

    @app.delete('/api/error')
    async def clear_error():
        store.clear_error()
        return store.snapshot()

    @app.post('/api/messages')
    async def post_message(payload: Any = Body(...)):
        """Inbound configuration message from the embedding page"""
        channel.post(payload)
        accepted = channel.drain() > 0
        return {'accepted': accepted, 'state': store.snapshot()}

    @app.post('/api/reset')
    async def reset():
        store.reset_to_defaults()
        return store.snapshot()

    @app.get('/api/graph')
    async def get_graph():
        """Renderer nodes and edges for the current parsed query"""
        flow_graph.build(store.state.parsed_query)
        return flow_graph.to_json()

    @app.get('/api/graph/nodes/{node_id}')
    async def get_node_neighborhood(node_id: str):
        flow_graph.build(store.state.parsed_query)
        details = flow_graph.neighborhood(node_id)
        if not details:
            raise HTTPException(status_code=404, detail=f"Node '{node_id}' not found")
        return details

    logger.info('%s %s ready', API_NAME, API_VERSION)
    return app


app = create_app()
