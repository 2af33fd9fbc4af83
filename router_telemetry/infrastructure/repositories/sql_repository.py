"""SQLAlchemy implementation of the telemetry storage collaborator."""

from dataclasses import asdict, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from marshmallow import Schema, ValidationError
from sqlalchemy import desc
from sqlalchemy.orm import sessionmaker

from router_telemetry.domain.entities.device import (
    AiMeshNode,
    BandwidthSample,
    ConnectionType,
    Device,
    DeviceType,
    MeshRole,
    NodeStatus,
    RouterFeatures,
    RouterStatus,
    SecurityMode,
    WifiNetwork,
)
from router_telemetry.domain.repositories.storage import TelemetryStorage
from router_telemetry.infrastructure.repositories.memory_repository import DEFAULT_BANDWIDTH_RETENTION
from router_telemetry.infrastructure.repositories.models import (
    AiMeshNodeModel,
    BandwidthSampleModel,
    DeviceModel,
    RouterFeaturesModel,
    RouterStatusModel,
    WifiNetworkModel,
)
from router_telemetry.infrastructure.repositories.schemas import (
    aimesh_node_schema,
    bandwidth_sample_schema,
    device_schema,
    router_features_schema,
    router_status_schema,
    wifi_network_schema,
)

# Primary key of the single-row tables
SINGLETON_ID = 1


def _serializable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _validated(schema: Schema, entity) -> Dict[str, Any]:
    payload = {key: _serializable(value) for key, value in asdict(entity).items()}
    try:
        return schema.load(payload)
    except ValidationError as e:
        raise ValueError(f"Validation error: {e.messages}") from e


def _columns(row, names) -> Dict[str, Any]:
    return {name: getattr(row, name) for name in names}


def _to_device(row: DeviceModel) -> Device:
    data = _columns(row, device_schema.fields)
    data["device_type"] = DeviceType(row.device_type)
    data["connection_type"] = ConnectionType(row.connection_type)
    return Device(**data)


def _to_wifi_network(row: WifiNetworkModel) -> WifiNetwork:
    data = _columns(row, wifi_network_schema.fields)
    data["security_mode"] = SecurityMode(row.security_mode)
    return WifiNetwork(**data)


def _to_router_features(row: RouterFeaturesModel) -> RouterFeatures:
    data = _columns(row, router_features_schema.fields)
    data["aimesh_peers"] = (row.aimesh_peers or "").split()
    return RouterFeatures(**data)


def _to_mesh_node(row: AiMeshNodeModel) -> AiMeshNode:
    data = _columns(row, aimesh_node_schema.fields)
    data["role"] = MeshRole(row.role)
    data["status"] = NodeStatus(row.status)
    return AiMeshNode(**data)


class SqlTelemetryStorage(TelemetryStorage):
    """Telemetry storage backed by SQLAlchemy; one short-lived session per call."""

    def __init__(self, session_factory: sessionmaker, bandwidth_retention: int = DEFAULT_BANDWIDTH_RETENTION):
        self.SessionLocal = session_factory
        self.bandwidth_retention = bandwidth_retention

    async def list_devices(self) -> List[Device]:
        db = self.SessionLocal()
        try:
            return [_to_device(row) for row in db.query(DeviceModel).order_by(DeviceModel.mac_address).all()]
        finally:
            db.close()

    async def get_device_by_mac(self, mac_address: str) -> Optional[Device]:
        db = self.SessionLocal()
        try:
            row = db.query(DeviceModel).filter_by(mac_address=mac_address).first()
            return _to_device(row) if row else None
        finally:
            db.close()

    async def create_device(self, device: Device) -> Device:
        """Create a new device."""
        validated_data = _validated(device_schema, device)

        db = self.SessionLocal()
        try:
            if db.query(DeviceModel).filter_by(mac_address=device.mac_address).first():
                raise ValueError(f"Device {device.mac_address} already exists")
            row = DeviceModel(**validated_data)
            db.add(row)
            db.commit()
            db.refresh(row)
            return _to_device(row)
        finally:
            db.close()

    async def update_device(self, mac_address: str, changes: Dict[str, Any]) -> Optional[Device]:
        """Apply ``changes`` to a stored device; None when the MAC is unknown."""
        db = self.SessionLocal()
        try:
            row = db.query(DeviceModel).filter_by(mac_address=mac_address).first()
            if not row:
                return None

            updated = replace(_to_device(row), **changes)
            for key, value in _validated(device_schema, updated).items():
                setattr(row, key, value)
            db.commit()
            db.refresh(row)
            return _to_device(row)
        finally:
            db.close()

    async def list_wifi_networks(self) -> List[WifiNetwork]:
        db = self.SessionLocal()
        try:
            rows = db.query(WifiNetworkModel).order_by(WifiNetworkModel.band, WifiNetworkModel.ssid).all()
            return [_to_wifi_network(row) for row in rows]
        finally:
            db.close()

    async def upsert_wifi_network(self, network: WifiNetwork) -> WifiNetwork:
        validated_data = _validated(wifi_network_schema, network)

        db = self.SessionLocal()
        try:
            row = db.query(WifiNetworkModel).filter_by(ssid=network.ssid, band=network.band).first()
            if row is None:
                row = WifiNetworkModel(**validated_data)
                db.add(row)
            else:
                for key, value in validated_data.items():
                    setattr(row, key, value)
            db.commit()
            db.refresh(row)
            return _to_wifi_network(row)
        finally:
            db.close()

    async def get_router_status(self) -> Optional[RouterStatus]:
        db = self.SessionLocal()
        try:
            row = db.query(RouterStatusModel).filter_by(id=SINGLETON_ID).first()
            return RouterStatus(**_columns(row, router_status_schema.fields)) if row else None
        finally:
            db.close()

    async def upsert_router_status(self, status: RouterStatus) -> RouterStatus:
        validated_data = _validated(router_status_schema, status)

        db = self.SessionLocal()
        try:
            row = db.query(RouterStatusModel).filter_by(id=SINGLETON_ID).first()
            if row is None:
                row = RouterStatusModel(id=SINGLETON_ID)
                db.add(row)
            for key, value in validated_data.items():
                setattr(row, key, value)
            db.commit()
            return status
        finally:
            db.close()

    async def get_router_features(self) -> Optional[RouterFeatures]:
        db = self.SessionLocal()
        try:
            row = db.query(RouterFeaturesModel).filter_by(id=SINGLETON_ID).first()
            return _to_router_features(row) if row else None
        finally:
            db.close()

    async def upsert_router_features(self, features: RouterFeatures) -> RouterFeatures:
        validated_data = _validated(router_features_schema, features)
        validated_data["aimesh_peers"] = " ".join(validated_data.get("aimesh_peers", []))

        db = self.SessionLocal()
        try:
            row = db.query(RouterFeaturesModel).filter_by(id=SINGLETON_ID).first()
            if row is None:
                row = RouterFeaturesModel(id=SINGLETON_ID)
                db.add(row)
            for key, value in validated_data.items():
                setattr(row, key, value)
            db.commit()
            return features
        finally:
            db.close()

    async def add_bandwidth_sample(self, sample: BandwidthSample) -> BandwidthSample:
        """Append a sample and trim the table to the retention bound."""
        validated_data = _validated(bandwidth_sample_schema, sample)

        db = self.SessionLocal()
        try:
            db.add(BandwidthSampleModel(**validated_data))
            db.flush()
            stale_ids = [
                row_id for (row_id,) in db.query(BandwidthSampleModel.id)
                .order_by(desc(BandwidthSampleModel.timestamp), desc(BandwidthSampleModel.id))
                .offset(self.bandwidth_retention)
                .all()
            ]
            if stale_ids:
                db.query(BandwidthSampleModel).filter(BandwidthSampleModel.id.in_(stale_ids)) \
                    .delete(synchronize_session=False)
            db.commit()
            return sample
        finally:
            db.close()

    async def list_bandwidth_samples(self, limit: Optional[int] = None) -> List[BandwidthSample]:
        db = self.SessionLocal()
        try:
            query = db.query(BandwidthSampleModel).order_by(
                desc(BandwidthSampleModel.timestamp), desc(BandwidthSampleModel.id))
            if limit is not None:
                query = query.limit(max(limit, 0))
            rows = list(reversed(query.all()))
            return [BandwidthSample(**_columns(row, bandwidth_sample_schema.fields)) for row in rows]
        finally:
            db.close()

    async def list_mesh_nodes(self) -> List[AiMeshNode]:
        db = self.SessionLocal()
        try:
            return [_to_mesh_node(row) for row in db.query(AiMeshNodeModel).order_by(AiMeshNodeModel.id).all()]
        finally:
            db.close()

    async def upsert_mesh_node(self, node: AiMeshNode) -> AiMeshNode:
        validated_data = _validated(aimesh_node_schema, node)

        db = self.SessionLocal()
        try:
            row = db.query(AiMeshNodeModel).filter_by(id=node.id).first()
            if row is None:
                row = AiMeshNodeModel(**validated_data)
                db.add(row)
            else:
                for key, value in validated_data.items():
                    setattr(row, key, value)
            db.commit()
            return node
        finally:
            db.close()

    async def delete_mesh_node(self, node_id: str) -> bool:
        """
        Delete a mesh node by id.

        Returns:
            True if deleted, False if not found
        """
        db = self.SessionLocal()
        try:
            row = db.query(AiMeshNodeModel).filter_by(id=node_id).first()
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True
        finally:
            db.close()
