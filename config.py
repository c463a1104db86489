# config.py

# Defaults for the command-line tool in app.py. The library itself does not read this file.

# --- Density clustering ---
CLUSTERING_EPS = 0.17
CLUSTERING_MIN_SAMPLES = 10

# "euclidean", "manhattan" or "chebyshev"
DEFAULT_METRIC = "euclidean"

# Radius search used for the neighbor graph and by the query commands:
# "stack", "parent" or "brute"
DEFAULT_STRATEGY = "stack"

# --- Query commands ---
KNN_QUERY = 0
KNN_K = 4
RADIUS = 0.91

# --- Input ---
# Points sampled when the input file is a triangle mesh.
PCD_NUM_POINTS = 20000

# --- Output ---
NOISE_COLOR = (0.0, 0.0, 0.0)

# --- Logging ---
LOG_LEVEL = "INFO"
# Set to a path such as "logs/vpscan.log" to also log to a file.
LOG_FILE = None
