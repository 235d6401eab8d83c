"""
NoteForge Backend - Services Layer
===================================

Business logic between the routes (HTTP) and the database / providers.
Services take their collaborators as constructor arguments and are built
once per process by dependencies.build_services().

Service Inventory:
    - ContentStore:          document content load/save (lazy creation, LWW)
    - SummarizationService:  prompt building + provider stream relay
    - LLMService (abstract): completion provider interface + CircuitBreaker
    - OpenRouterService / GeminiService: concrete providers
    - FileService:           editor image validation and storage
    - SessionGate:           access-token verification

Client-side components (one per open document):
    - AutosaveCoordinator:   debounced saves
    - NotificationCenter:    toast notifications
    - NoteSession:           the editing flow tying them together
"""
