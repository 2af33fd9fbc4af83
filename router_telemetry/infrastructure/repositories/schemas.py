"""Schemas validating telemetry records before they are written to the database."""

from marshmallow import Schema, fields, validate

from router_telemetry.domain.entities.device import (
    ConnectionType,
    DeviceType,
    MeshRole,
    NodeStatus,
    SecurityMode,
)

MAC_PATTERN = r'^[0-9A-F]{2}(:[0-9A-F]{2}){5}$'
BANDS = ["2.4GHz", "5GHz", "6GHz"]


def _values(enum_cls):
    return [member.value for member in enum_cls]


class DeviceSchema(Schema):
    """Schema for the DeviceModel model."""

    mac_address = fields.String(required=True, validate=validate.Regexp(MAC_PATTERN))
    name = fields.String(required=True, validate=validate.Length(min=1, max=200))
    ip_address = fields.String(allow_none=True)
    hostname = fields.String(allow_none=True)
    device_type = fields.String(validate=validate.OneOf(_values(DeviceType)))
    is_online = fields.Boolean()

    # Link
    connection_type = fields.String(validate=validate.OneOf(_values(ConnectionType)))
    signal_strength = fields.Integer(allow_none=True)
    wireless_interface = fields.String(allow_none=True)
    wireless_band = fields.String(allow_none=True)
    aimesh_node = fields.String(allow_none=True)
    aimesh_node_mac = fields.String(allow_none=True)

    download_speed = fields.Float(allow_none=True)
    upload_speed = fields.Float(allow_none=True)
    connected_at = fields.DateTime(allow_none=True)
    last_seen = fields.DateTime(allow_none=True)


class WifiNetworkSchema(Schema):
    """Schema for the WifiNetworkModel model."""

    ssid = fields.String(required=True, validate=validate.Length(min=1, max=64))
    band = fields.String(required=True, validate=validate.OneOf(BANDS))
    channel = fields.Integer(allow_none=True)
    is_enabled = fields.Boolean()
    security_mode = fields.String(validate=validate.OneOf(_values(SecurityMode)))
    is_guest = fields.Boolean()
    connected_device_count = fields.Integer(validate=validate.Range(min=0))
    interface = fields.String(allow_none=True)


class RouterStatusSchema(Schema):
    """Schema for the RouterStatusModel model."""

    model = fields.String(required=True)
    firmware = fields.String(required=True)
    ip_address = fields.String(required=True)
    uptime = fields.Integer(validate=validate.Range(min=0))
    cpu_usage = fields.Float()
    memory_usage = fields.Float()
    memory_total = fields.Float()
    temperature = fields.Float(allow_none=True)
    storage_usage = fields.Float(allow_none=True)
    storage_total = fields.Float(allow_none=True)
    load_average = fields.String(allow_none=True)
    cpu_cores = fields.Integer(allow_none=True)
    cpu_model = fields.String(allow_none=True)
    last_updated = fields.DateTime(allow_none=True)


class RouterFeaturesSchema(Schema):
    """Schema for the RouterFeaturesModel model."""

    adaptive_qos_enabled = fields.Boolean()
    qos_mode = fields.String(allow_none=True)
    ai_protection_enabled = fields.Boolean()
    malware_blocking = fields.Boolean()
    vulnerability_protection = fields.Boolean()
    vpn_server_enabled = fields.Boolean()
    vpn_protocol = fields.String(allow_none=True)
    aimesh_is_master = fields.Boolean()
    aimesh_node_count = fields.Integer(validate=validate.Range(min=0))
    aimesh_peers = fields.List(fields.String(validate=validate.Regexp(MAC_PATTERN)))
    wireless_clients_24ghz = fields.Integer(validate=validate.Range(min=0))
    wireless_clients_5ghz = fields.Integer(validate=validate.Range(min=0))
    wireless_clients_6ghz = fields.Integer(validate=validate.Range(min=0))
    wireless_clients_total = fields.Integer(validate=validate.Range(min=0))
    wifi_network_count = fields.Integer(allow_none=True)
    guest_network_count = fields.Integer(allow_none=True)
    last_updated = fields.DateTime(allow_none=True)


class BandwidthSampleSchema(Schema):
    """Schema for the BandwidthSampleModel model."""

    timestamp = fields.DateTime(required=True)
    download_speed = fields.Float(allow_none=True)
    upload_speed = fields.Float(allow_none=True)
    total_download = fields.Float(validate=validate.Range(min=0))
    total_upload = fields.Float(validate=validate.Range(min=0))
    interface = fields.String(allow_none=True)


class AiMeshNodeSchema(Schema):
    """Schema for the AiMeshNodeModel model."""

    id = fields.String(required=True)
    name = fields.String(required=True)
    role = fields.String(required=True, validate=validate.OneOf(_values(MeshRole)))
    status = fields.String(validate=validate.OneOf(_values(NodeStatus)))
    mac_address = fields.String(allow_none=True)
    ip_address = fields.String(allow_none=True)
    signal_strength = fields.Integer(allow_none=True)
    connected_device_count = fields.Integer(validate=validate.Range(min=0))
    firmware_version = fields.String(allow_none=True)
    uptime = fields.Integer(allow_none=True)
    bandwidth = fields.Dict(keys=fields.String(), values=fields.Float(), allow_none=True)


# Schema instances
device_schema = DeviceSchema()
wifi_network_schema = WifiNetworkSchema()
router_status_schema = RouterStatusSchema()
router_features_schema = RouterFeaturesSchema()
bandwidth_sample_schema = BandwidthSampleSchema()
aimesh_node_schema = AiMeshNodeSchema()
