"""
Core constants for bleclient.

D-Bus and BlueZ names, the identity of the one peripheral this client talks
to, and the RESULT_* codes carried by every error.
"""

# D-Bus Core Constants
DBUS_PROPERTIES = "org.freedesktop.DBus.Properties"
DBUS_OM_IFACE = "org.freedesktop.DBus.ObjectManager"
INTROSPECT_INTERFACE = "org.freedesktop.DBus.Introspectable"

# Interfaces never screened for a role
DBUS_META_INTERFACES = (INTROSPECT_INTERFACE, DBUS_PROPERTIES)

# BlueZ Core Constants
BLUEZ_SERVICE_NAME = "org.bluez"
BLUEZ_PATH = "/org/bluez"
ROOT_PATH = "/"

# BlueZ Interface Constants
ADAPTER_INTERFACE = BLUEZ_SERVICE_NAME + ".Adapter1"
DEVICE_INTERFACE = BLUEZ_SERVICE_NAME + ".Device1"
GATT_CHARACTERISTIC_INTERFACE = BLUEZ_SERVICE_NAME + ".GattCharacteristic1"

# Signal members
SIGNAL_INTERFACES_ADDED = "InterfacesAdded"
SIGNAL_INTERFACES_REMOVED = "InterfacesRemoved"
SIGNAL_PROPERTIES_CHANGED = "PropertiesChanged"

# Methods
METHOD_GET_MANAGED_OBJECTS = "GetManagedObjects"
METHOD_SET_DISCOVERY_FILTER = "SetDiscoveryFilter"
METHOD_START_DISCOVERY = "StartDiscovery"
METHOD_STOP_DISCOVERY = "StopDiscovery"
METHOD_CONNECT = "Connect"
METHOD_ACQUIRE_NOTIFY = "AcquireNotify"
METHOD_WRITE_VALUE = "WriteValue"
METHOD_SET = "Set"

# UUIDs for the single device and two characteristics this client deals with
UUID_DEVICE = "0003cbbb-0000-1000-8000-00805f9b0131"
UUID_CHARACTERISTIC_RD = "0003caa2-0000-1000-8000-00805f9b0131"
UUID_CHARACTERISTIC_WR = "0003cbb1-0000-1000-8000-00805f9b0131"

# Property names the state machine reacts to
PROP_POWERED = "Powered"
PROP_DISCOVERING = "Discovering"
PROP_RSSI = "RSSI"
PROP_CONNECTED = "Connected"
PROP_SERVICES_RESOLVED = "ServicesResolved"
PROP_NOTIFY_ACQUIRED = "NotifyAcquired"
PROP_UUID = "UUID"
PROP_UUIDS = "UUIDs"

# Timeouts (seconds).  -1 selects the bus default.
METHOD_CALL_TIMEOUT = 300
DEFAULT_CALL_TIMEOUT = -1

# Notification pipe read size
NOTIFY_BUFFER_SIZE = 512

# Result/Error Codes
RESULT_OK = 0
RESULT_ERR = 1
RESULT_ERR_NOT_CONNECTED = 2
RESULT_ERR_NOT_SUPPORTED = 3
RESULT_ERR_SERVICES_NOT_RESOLVED = 4
RESULT_ERR_WRONG_STATE = 5
RESULT_ERR_ACCESS_DENIED = 6
RESULT_EXCEPTION = 7
RESULT_ERR_BAD_ARGS = 8
RESULT_ERR_NOT_FOUND = 9
RESULT_ERR_METHOD_SIGNATURE_NOT_EXIST = 10
RESULT_ERR_NO_REPLY = 14
RESULT_ERR_ACTION_IN_PROGRESS = 16
RESULT_ERR_UNKNOWN_SERVCE = 17
RESULT_ERR_UNKNOWN_OBJECT = 18
RESULT_ERR_UNKNOWN_CONNECT_FAILURE = 20
RESULT_ERR_METHOD_CALL_FAIL = 21
RESULT_ERR_NOT_PERMITTED = 22
RESULT_ERR_NOT_AUTHORIZED = 23
RESULT_ERR_MALFORMED_REPLY = 27
RESULT_ERR_TYPE_MISMATCH = 28
RESULT_ERR_NOT_BOUND = 29
RESULT_ERR_TRANSPORT = 30
