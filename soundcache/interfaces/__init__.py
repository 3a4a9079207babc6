"""Interface definitions for the collaborators soundcache consumes.

The cache talks to storage, the network and the audio decoder only through
these abstract base classes; concrete adapters live in
``soundcache.providers`` and are injected when the ``AudioCache`` is built
(see ``soundcache.main.build_audio_cache``).  Tests inject in-memory fakes
the same way.

    Interface            ->  Concrete implementations (soundcache/providers/)
    ------------------------------------------------------------------------
    IPersistentStore     ->  MemoryStore, SQLiteStore
    INetworkTransport    ->  HttpxTransport
    IAudioDecoder        ->  RawBytesDecoder
"""

from soundcache.interfaces.decoder_provider import IAudioDecoder
from soundcache.interfaces.store_provider import IPersistentStore, IStoreHandle
from soundcache.interfaces.transport_provider import INetworkTransport, TransportResponse

__all__ = [
    "IAudioDecoder",
    "INetworkTransport",
    "IPersistentStore",
    "IStoreHandle",
    "TransportResponse",
]
