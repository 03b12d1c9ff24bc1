"""
NSFD - Hydra entry point for running a simulation.

Usage:
    python main.py
    python main.py scenario=channel geometry.size=[128,32,1]
    python main.py scenario=step turbulence.on=true vtk.enabled=true
"""

import logging
import os
import sys
import tempfile
from pathlib import Path

import hydra
import mlflow
from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

load_dotenv()
sys.path.insert(0, str(Path(__file__).parent / "src"))

from nsfd import Parameters, ProcessIdentity, Simulation  # noqa: E402

log = logging.getLogger(__name__)


def get_experiment_name(cfg: DictConfig) -> str:
    """Build full experiment name with optional prefix."""
    name = cfg.experiment_name
    prefix = cfg.mlflow.get("project_prefix", "")
    if prefix and not name.startswith("/"):
        return f"{prefix}/{name}"
    return name


def setup_mlflow(cfg: DictConfig) -> str:
    """Setup MLflow tracking and return experiment name."""
    tracking_uri = cfg.mlflow.get("tracking_uri", "./mlruns")
    os.environ["MLFLOW_TRACKING_URI"] = str(tracking_uri)
    mlflow.set_tracking_uri(tracking_uri)

    experiment_name = get_experiment_name(cfg)
    mlflow.set_experiment(experiment_name)
    return experiment_name


def run_simulation(cfg: DictConfig, identity: ProcessIdentity) -> str:
    """Run the simulation and log to MLflow. Returns run_id."""
    params = Parameters.from_config(cfg)
    simulation = Simulation(params, identity)

    scenario = params.simulation.scenario
    size = "x".join(str(n) for n in params.geometry.size[: params.dim])
    run_name = f"{scenario}_{size}_Re{params.flow.Re:g}"

    parent_run_id = os.environ.get("MLFLOW_PARENT_RUN_ID")
    tags = {"scenario": scenario}
    if parent_run_id:
        tags.update({"mlflow.parentRunId": parent_run_id, "parent_run_id": parent_run_id, "sweep": "child"})

    with mlflow.start_run(run_name=run_name, tags=tags, nested=bool(parent_run_id)) as run:
        mlflow.log_params(params.to_mlflow())
        mlflow.log_dict(OmegaConf.to_container(cfg), "config.yaml")

        log.info(f"Running: {scenario} {size} Re={params.flow.Re}")
        metrics = simulation.run()

        mlflow.log_metrics(metrics.to_mlflow())
        batch = simulation.time_series.to_mlflow_batch()
        if batch:
            mlflow.tracking.MlflowClient().log_batch(run.info.run_id, metrics=batch)

        with tempfile.TemporaryDirectory() as tmpdir:
            history = Path(tmpdir) / "time_series.csv"
            simulation.time_series.to_dataframe().to_csv(history, index=False)
            mlflow.log_artifact(str(history))
        if simulation.vtk is not None:
            for path in simulation.vtk.written:
                mlflow.log_artifact(str(path), artifact_path="vtk")

        log.info(
            f"Done: {metrics.steps} steps, t={metrics.final_time:.4f}, "
            f"unconverged solves={metrics.unconverged_solves}, time={metrics.wall_time_seconds:.2f}s"
        )
        return run.info.run_id


@hydra.main(config_path="conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Main entry point."""
    processors = 1
    for n in cfg.parallel.num_processors:
        processors *= n
    identity = ProcessIdentity.from_mpi() if processors > 1 else ProcessIdentity.serial()
    if identity.rank != 0:
        # Collective steps only; rank 0 reports
        Simulation(Parameters.from_config(cfg), identity).run()
        return

    log.info(f"MLflow experiment: {setup_mlflow(cfg)}")
    run_simulation(cfg, identity)


if __name__ == "__main__":
    main()
