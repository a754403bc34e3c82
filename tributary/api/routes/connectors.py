"""
Connector API Routes
====================

Lifecycle and permission endpoints of the connectors. Each route resolves
the connector's provider and delegates to its manager.
"""

import logging

from fastapi import APIRouter, Depends, Query, status

from tributary.api.deps import get_services, verify_api_key
from tributary.api.schemas.base import ResponseSchema
from tributary.api.schemas.connectors import (
    BatchContentNodesRequest,
    ConfigurationRequest,
    ConnectorCreatedResponse,
    ConnectorResponse,
    ContentNodeResponse,
    CreateConnectorRequest,
    SetPermissionsRequest,
    SyncRequest,
    UpdateConnectorRequest,
    WorkflowResponse,
)
from tributary.core.connectors.application.manager import BaseConnectorManager
from tributary.core.connectors.domain.connector import Connector, ConnectorProvider
from tributary.core.connectors.domain.errors import (
    ConnectorManagerError,
    ConnectorManagerErrorCode,
)
from tributary.core.connectors.domain.permissions import Permission
from tributary.core.connectors.domain.ports.content_store import DataSourceConfig
from tributary.platform.composition_root import Services, get_connector_manager

router = APIRouter(
    prefix="/connectors", tags=["connectors"], dependencies=[Depends(verify_api_key)]
)
logger = logging.getLogger(__name__)


async def _get_connector(connector_id: int, services: Services) -> Connector:
    connector = await services.connectors.get(connector_id)
    if connector is None:
        raise ConnectorManagerError(
            ConnectorManagerErrorCode.CONNECTOR_NOT_FOUND, f"Connector {connector_id} not found"
        )
    return connector


async def _manager(connector_id: int, services: Services) -> BaseConnectorManager:
    connector = await _get_connector(connector_id, services)
    return get_connector_manager(connector.type, connector.id, services)


# --- Lifecycle ---


@router.post(
    "/{provider}",
    response_model=ResponseSchema[ConnectorCreatedResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_connector(
    provider: ConnectorProvider,
    request: CreateConnectorRequest,
    services: Services = Depends(get_services),
):
    """Validate the connection, create the connector and start its workflows."""
    manager = get_connector_manager(provider, None, services)
    connector_id = await manager.create(
        data_source=DataSourceConfig(
            workspace_id=request.workspace_id,
            data_source_id=request.data_source_id,
            workspace_api_key=request.workspace_api_key,
        ),
        connection_id=request.connection_id,
    )
    return ResponseSchema(
        data=ConnectorCreatedResponse(connector_id=connector_id),
        message=f"{provider.value} connector created",
    )


@router.get("/{connector_id}", response_model=ResponseSchema[ConnectorResponse])
async def get_connector(connector_id: int, services: Services = Depends(get_services)):
    connector = await _get_connector(connector_id, services)
    return ResponseSchema(data=ConnectorResponse.from_connector(connector))


@router.patch("/{connector_id}", response_model=ResponseSchema[ConnectorCreatedResponse])
async def update_connector(
    connector_id: int,
    request: UpdateConnectorRequest,
    services: Services = Depends(get_services),
):
    """Swap the connection of a connector. The provider target must stay the same."""
    manager = await _manager(connector_id, services)
    updated_id = await manager.update(connection_id=request.connection_id)
    return ResponseSchema(data=ConnectorCreatedResponse(connector_id=updated_id))


@router.delete("/{connector_id}", response_model=ResponseSchema[WorkflowResponse])
async def clean_connector(connector_id: int, services: Services = Depends(get_services)):
    """Stop the workflows and delete the connector with everything it owns."""
    manager = await _manager(connector_id, services)
    await manager.clean()
    return ResponseSchema(data=WorkflowResponse(connector_id=connector_id), message="Deleted")


@router.post("/{connector_id}/stop", response_model=ResponseSchema[WorkflowResponse])
async def stop_connector(connector_id: int, services: Services = Depends(get_services)):
    manager = await _manager(connector_id, services)
    stopped = await manager.stop()
    return ResponseSchema(data=WorkflowResponse(connector_id=connector_id, stopped=stopped))


@router.post("/{connector_id}/resume", response_model=ResponseSchema[WorkflowResponse])
async def resume_connector(connector_id: int, services: Services = Depends(get_services)):
    manager = await _manager(connector_id, services)
    await manager.resume()
    return ResponseSchema(data=WorkflowResponse(connector_id=connector_id))


@router.post("/{connector_id}/pause", response_model=ResponseSchema[WorkflowResponse])
async def pause_connector(connector_id: int, services: Services = Depends(get_services)):
    manager = await _manager(connector_id, services)
    stopped = await manager.pause()
    return ResponseSchema(data=WorkflowResponse(connector_id=connector_id, stopped=stopped))


@router.post("/{connector_id}/unpause", response_model=ResponseSchema[WorkflowResponse])
async def unpause_connector(connector_id: int, services: Services = Depends(get_services)):
    manager = await _manager(connector_id, services)
    await manager.unpause()
    return ResponseSchema(data=WorkflowResponse(connector_id=connector_id))


@router.post("/{connector_id}/sync", response_model=ResponseSchema[WorkflowResponse])
async def sync_connector(
    connector_id: int,
    request: SyncRequest | None = None,
    services: Services = Depends(get_services),
):
    """Incremental sync from ``from_ts``, or a forced full resync without it."""
    manager = await _manager(connector_id, services)
    workflow_id = await manager.sync(from_ts=request.from_ts if request else None)
    return ResponseSchema(
        data=WorkflowResponse(connector_id=connector_id, workflow_id=workflow_id)
    )


@router.post("/{connector_id}/garbage_collect", response_model=ResponseSchema[WorkflowResponse])
async def garbage_collect_connector(
    connector_id: int, services: Services = Depends(get_services)
):
    manager = await _manager(connector_id, services)
    workflow_id = await manager.garbage_collect()
    return ResponseSchema(
        data=WorkflowResponse(connector_id=connector_id, workflow_id=workflow_id)
    )


@router.post("/{connector_id}/config/{config_key}", response_model=ResponseSchema[WorkflowResponse])
async def configure_connector(
    connector_id: int,
    config_key: str,
    request: ConfigurationRequest,
    services: Services = Depends(get_services),
):
    manager = await _manager(connector_id, services)
    await manager.configure(config_key, request.value)
    return ResponseSchema(data=WorkflowResponse(connector_id=connector_id))


# --- Permissions and content nodes ---


@router.post("/{connector_id}/permissions", response_model=ResponseSchema[WorkflowResponse])
async def set_permissions(
    connector_id: int,
    request: SetPermissionsRequest,
    services: Services = Depends(get_services),
):
    """Apply the permission changes; the sync workflow picks them up."""
    manager = await _manager(connector_id, services)
    await manager.set_permissions(request.permissions)
    return ResponseSchema(
        data=WorkflowResponse(connector_id=connector_id), message="Permissions updated"
    )


@router.get(
    "/{connector_id}/permissions", response_model=ResponseSchema[list[ContentNodeResponse]]
)
async def retrieve_permissions(
    connector_id: int,
    parent_id: str | None = Query(None, description="Internal id of the node to expand"),
    filter_permission: Permission | None = Query(None),
    services: Services = Depends(get_services),
):
    manager = await _manager(connector_id, services)
    nodes = await manager.retrieve_permissions(
        parent_internal_id=parent_id, filter_permission=filter_permission
    )
    return ResponseSchema(data=[ContentNodeResponse.from_node(node) for node in nodes])


@router.post(
    "/{connector_id}/content_nodes", response_model=ResponseSchema[list[ContentNodeResponse]]
)
async def retrieve_batch_content_nodes(
    connector_id: int,
    request: BatchContentNodesRequest,
    services: Services = Depends(get_services),
):
    manager = await _manager(connector_id, services)
    nodes = await manager.retrieve_batch_content_nodes(request.internal_ids)
    return ResponseSchema(data=[ContentNodeResponse.from_node(node) for node in nodes])


@router.get(
    "/{connector_id}/content_nodes/{internal_id}/parents",
    response_model=ResponseSchema[list[str]],
)
async def retrieve_content_node_parents(
    connector_id: int, internal_id: str, services: Services = Depends(get_services)
):
    """Ancestor chain of a node, nearest first, starting with the node itself."""
    manager = await _manager(connector_id, services)
    return ResponseSchema(data=await manager.retrieve_content_node_parents(internal_id))
