"""
Connector Schemas
=================

Request and response models of the connector lifecycle endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from tributary.core.connectors.domain.connector import Connector, ConnectorProvider
from tributary.core.connectors.domain.content_node import ContentNode, ContentNodeType
from tributary.core.connectors.domain.permissions import Permission
from tributary.core.state.machine import SyncStatus


class CreateConnectorRequest(BaseModel):
    workspace_id: str
    data_source_id: str
    workspace_api_key: str
    connection_id: str = Field(..., description="Connection holding the provider credentials")


class UpdateConnectorRequest(BaseModel):
    connection_id: str | None = None


class SyncRequest(BaseModel):
    from_ts: int | None = Field(
        None, description="Epoch milliseconds; omit for a full resync from scratch"
    )


class ConfigurationRequest(BaseModel):
    value: str


class SetPermissionsRequest(BaseModel):
    permissions: dict[str, str] = Field(
        ..., description="Internal id to 'read' or 'none'", examples=[{"zendesk-brand-1-2": "read"}]
    )


class BatchContentNodesRequest(BaseModel):
    internal_ids: list[str] = Field(..., min_length=1)


class ConnectorCreatedResponse(BaseModel):
    connector_id: int


class WorkflowResponse(BaseModel):
    connector_id: int
    workflow_id: str | None = None
    stopped: int | None = None


class ConnectorResponse(BaseModel):
    id: int
    type: ConnectorProvider
    connection_id: str
    workspace_id: str
    data_source_id: str
    paused_at: datetime | None = None
    sync_status: SyncStatus
    error_type: str | None = None
    last_sync_start_time: datetime | None = None
    last_sync_finish_time: datetime | None = None
    last_sync_success_time: datetime | None = None

    @classmethod
    def from_connector(cls, connector: Connector) -> "ConnectorResponse":
        return cls(
            id=connector.id,
            type=connector.type,
            connection_id=connector.connection_id,
            workspace_id=connector.workspace_id,
            data_source_id=connector.data_source_id,
            paused_at=connector.paused_at,
            sync_status=connector.sync_status,
            error_type=connector.error_type,
            last_sync_start_time=connector.last_sync_start_time,
            last_sync_finish_time=connector.last_sync_finish_time,
            last_sync_success_time=connector.last_sync_success_time,
        )


class ContentNodeResponse(BaseModel):
    internal_id: str
    parent_internal_id: str | None
    type: ContentNodeType
    title: str
    source_url: str | None
    permission: Permission
    expandable: bool
    mime_type: str
    last_updated_at: int | None = None
    prevent_selection: bool = False

    @classmethod
    def from_node(cls, node: ContentNode) -> "ContentNodeResponse":
        return cls(
            internal_id=node.internal_id,
            parent_internal_id=node.parent_internal_id,
            type=node.type,
            title=node.title,
            source_url=node.source_url,
            permission=node.permission,
            expandable=node.expandable,
            mime_type=node.mime_type,
            last_updated_at=node.last_updated_at,
            prevent_selection=node.prevent_selection,
        )
