import os
from typing import Optional

from hydra import compose, initialize
from hydra.core.hydra_config import HydraConfig
from omegaconf import DictConfig


def load_hydra_config(
    version_base: Optional[str] = None,
    config_path: str = "../../../conf",
    config_name: str = "config.yaml",
) -> DictConfig:
    with initialize(version_base=version_base, config_path=config_path):
        cfg = compose(config_name=config_name, return_hydra_config=True)
        HydraConfig.instance().set_config(cfg)
    return cfg


def init_env(cfg: DictConfig) -> None:
    for item in cfg.get("env", None) or []:
        os.environ[item.name] = str(item.value)


conf: DictConfig = load_hydra_config()
init_env(conf)
