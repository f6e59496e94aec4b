"""Shared constants and defaults for facerecon."""

# Camera defaults (fixed-FOV perspective projector)
CAMERA_FOV_Y_DEG = 45.0
CAMERA_NEAR = 1.0
CAMERA_FAR = 10.0
DEFAULT_FOCAL_LENGTH = (1000.0, 1000.0)  # Reserved; the projector ignores it

# Reduced (FACS-like) expression space
FACS_DIM = 47
FACS_NEUTRAL_EPSILON = 1e-6
FACS_LOWER_BOUND = -1.0
FACS_UPPER_BOUND = 1.0

# Initial pose
INITIAL_ROTATION = (0.0, 0.0, 0.0)
INITIAL_TRANSLATION = (0.0, 0.0, -1.0)

# Contour (silhouette) landmarks occupy the first slots of the constraint list
NUM_CONTOUR_POINTS = 15
CONTOUR_INITIAL_WEIGHT = 0.9
CONTOUR_MAX_DISTANCE = 100.0  # pixels

# Pupil landmarks: IPD is measured between the midpoints of these pairs
LEFT_PUPIL_PAIR = (28, 30)
RIGHT_PUPIL_PAIR = (32, 34)
PUPIL_DISTANCE_SCALE = 100.0
MIN_CONSTRAINT_COUNT = max(LEFT_PUPIL_PAIR + RIGHT_PUPIL_PAIR) + 1  # 35

# Outer loop schedule
OUTER_ITERATIONS = 8
POSE_ITERATIONS = 30
WEIGHT_ITERATION_STEP = 5  # inner cap = outer iteration * step

# Prior trust weights and their per-iteration decay
IDENTITY_PRIOR_WEIGHT = 10.0
EXPRESSION_PRIOR_WEIGHT = 0.1
IDENTITY_PRIOR_DECAY = 1.0
EXPRESSION_PRIOR_DECAY = 0.01
