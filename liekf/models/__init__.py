"""
Process and measurement models for the differential-drive estimator.

- DiffDriveSystemModel: arc motion X ⊞ (dℓ, 0, dθ), optional calibration block
- Landmark2DMeasurementModel: y = X⁻¹ · b
- PositionMeasurementModel: y = t(X)
- MeasurementModelBundleWrapper: sub-state model lifted to a Bundle state
"""

from .diff_drive import DiffDriveSystemModel
from .measurement_models import (
    Landmark2DMeasurementModel,
    MeasurementModel,
    MeasurementModelBundleWrapper,
    PositionMeasurementModel,
    create_measurement_noise_covariance,
)

__all__ = [
    # Process model
    'DiffDriveSystemModel',

    # Measurement models
    'MeasurementModel',
    'Landmark2DMeasurementModel',
    'PositionMeasurementModel',
    'MeasurementModelBundleWrapper',
    'create_measurement_noise_covariance',
]
