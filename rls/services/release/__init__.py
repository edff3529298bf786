"""Release bounded context.

Leaves first:
- semver / version_store: version parsing, increments and the version record
- build: build backends (Maven, Gradle) behind the BuildAdapter protocol
- changelog: commit subjects since the last tag
- gh / host_client: release host access with retry and fallback
- plugins: executables run at lifecycle hooks
- orchestrator: the release state machine tying the above together
"""
