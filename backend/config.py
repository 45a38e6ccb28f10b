import os

TICK_MS = int(os.getenv("TICK_MS", 100))          # ms per simulation tick

# Green bounds and starvation threshold
MIN_GREEN_MS = int(os.getenv("MIN_GREEN_MS", 7000))
MAX_GREEN_MS = int(os.getenv("MAX_GREEN_MS", 45000))
TMAX_S = float(os.getenv("TMAX_S", 90))           # max tolerable wait (seconds)

MAX_WAIT_GREEN_MS = 15000    # forced green when someone starves
INCIDENT_CAP_FACTOR = 1.15   # incident raises the cap by 15%
BASE_EXTRA_CAP_MS = 38000
PER_VEHICLE_MS = 800
PER_WAIT_S_MS = 120
PLATOON_BONUS_MS = 2500

# Local fallback: queue total at which green saturates to MAX_GREEN_MS
LOAD_SATURATION = 40

# Clearance phases
SAFETY_YELLOW_MS = 3000
SAFETY_ALL_RED_MS = 800
PED_CLEARANCE_MS = 4000
CLEARANCE_MODE = os.getenv("CLEARANCE_MODE", "yellow_allred")   # or "pedestrian"

# "favor_a": equal scores go to axis A
# "alternate": equal scores go to the axis that did not have the last green
TIE_POLICY = os.getenv("TIE_POLICY", "favor_a")

# Remote decision service; empty means decide in-process
DECISION_URL = os.getenv("DECISION_URL", "")
DECISION_TIMEOUT_S = float(os.getenv("DECISION_TIMEOUT_S", 2.0))

SERVICE_RATE = 0.65          # vehicles/sec per served approach
MAX_ARRIVAL_RATE = 0.5       # vehicles/sec per approach at score 100
INCIDENT_CAPACITY_MULT = 0.5 # discharge multiplier on axis B during an incident

# Relative demand per approach (N/S main road slightly heavier)
ARRIVAL_WEIGHTS = {"N": 1.0, "E": 0.8, "S": 0.9, "W": 0.7}

SCENARIO_LENGTH = 600
DEFAULT_SCENARIO = "free"
DEFAULT_SEED = int(os.getenv("SIM_SEED", 42))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
