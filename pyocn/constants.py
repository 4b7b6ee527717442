# pyocn/constants.py

"""
Central repository for physical constants and fixed scheme parameters used by
the ocean diagnostics pipeline.
"""

# --- Physical Constants (SI units) ---
GRAVITY = 9.80616  # Gravitational acceleration (m s^-2)
DENSITY0 = 1014.65  # Boussinesq reference density (kg m^-3)

# --- Inactive / dummy-slot marker ---
# Large negative value so that any accidental use yields detectably invalid results.
SENTINEL = -1.0e34
# Magnitude above which a value is treated as sentinel-contaminated.
SENTINEL_THRESHOLD = 1.0e30

# --- Scheme constants ---
APVM_MIN_SCALE = 1.0e-10  # APVM is applied only above this scale factor
KE_EDGE_WEIGHT = 5.0 / 8.0  # blend weight of the edge-based cell kinetic energy
KE_VERTEX_WEIGHT = 3.0 / 8.0  # blend weight of the vertex-reconstructed estimate

# --- Linear equation of state defaults ---
EOS_LINEAR_DENSITY_REF = 1025.022  # kg m^-3
EOS_LINEAR_ALPHA = 0.2  # thermal expansion (kg m^-3 K^-1)
EOS_LINEAR_BETA = 0.8  # haline contraction (kg m^-3 psu^-1)
EOS_LINEAR_T_REF = 19.0  # deg C
EOS_LINEAR_S_REF = 35.0  # psu
