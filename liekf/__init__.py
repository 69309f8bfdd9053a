"""On-manifold Kalman filtering for a self-calibrating differential drive.

Core (no I/O, no logging):
- manifolds: SE(2), R^n and their direct-product Bundle
- state: DiffDriveState = Bundle(SE2, R^3) and Kinematics
- models: differential-drive process model, landmark and position models
- estimators: EKF, square-root EKF, invariant EKF and UKF on manifolds

Driver:
- sim: rate scheduling, ground-truth simulation and scenario runner
- config: scenario configuration (JSON)
- eval: error metrics and plots
"""

__version__ = "0.1.0"
