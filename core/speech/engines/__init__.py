"""Synthesis providers.

Importing this package registers every provider with `SpeechProvider`.
"""

from core.speech.engines.g_tts import GoogleText2Speech
from core.speech.engines.google_cloud import GoogleCloudProvider
from core.speech.engines.on_device import OnDeviceProvider
from core.speech.engines.relay_core import RelayProvider
from core.speech.engines.server_relay import ServerRelayProvider

__all__: list[str] = [
    "GoogleCloudProvider",
    "GoogleText2Speech",
    "OnDeviceProvider",
    "RelayProvider",
    "ServerRelayProvider",
]
