"""Audio response transcription: providers and the transcription job pipeline."""

from services.transcription.transcriber import (
    get_available_transcription_providers,
    get_transcription_provider,
    transcribe_with_provider,
)
from services.transcription.worker import (
    create_transcription_job,
    process_transcription_job,
    run_transcription_job_cycle,
)

__all__ = [
    "create_transcription_job",
    "get_available_transcription_providers",
    "get_transcription_provider",
    "process_transcription_job",
    "run_transcription_job_cycle",
    "transcribe_with_provider",
]
