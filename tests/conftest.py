import os
import tempfile

# Settings are cached on first use, so the environment must be in place
# before anything under ``app`` is imported.
os.environ.setdefault("USE_IN_MEMORY_STORE", "true")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="hazard-uploads-"))
os.environ.setdefault("JWT_SECRET", "test-secret")
