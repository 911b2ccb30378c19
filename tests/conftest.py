import os

# Keep test runs from writing daily log files into the working tree.
os.environ.setdefault("LOG_FILE_ENABLED", "false")
