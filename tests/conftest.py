import os

# Run Qt headless so the suite works without a display server.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
