# examples/run_simple.py

import logging
import os

import matplotlib.pyplot as plt
import pandas as pd

from xy_pool.models.pool_model import PoolModel
from xy_pool.utils.config_parser import load_config


def main():
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    # 1. Locate and load the YAML configuration
    script_dir = os.path.dirname(os.path.abspath(__file__))
    config = load_config(os.path.join(script_dir, "config_simple.yaml"))

    # 2. Build the model; the pool is initialized during construction
    model = PoolModel(config)

    # 3. Run the simulation for the configured number of steps
    for _ in range(model.num_steps):
        model.step()

    # 4. Collected reserves, shares, k and price as a DataFrame
    df = model.datacollector.get_model_vars_dataframe()

    print("\n=== Final pool state (last 5 steps) ===")
    print(df.tail())

    print("\n=== Activity ===")
    print(f"swaps={model.metrics['swaps']} deposits={model.metrics['deposits']} "
          f"withdrawals={model.metrics['withdrawals']} rejected={len(model.metrics['rejected'])}")

    rejected = pd.DataFrame(model.metrics["rejected"], columns=["agent", "action", "error", "step"])
    if not rejected.empty:
        print("\n=== Rejections by error ===")
        print(rejected.groupby(["action", "error"]).size())

    # 5. Plot reserves and spot price
    fig, ax1 = plt.subplots(figsize=(8, 4))
    ax1.plot(df.index, df["Reserve_X"], label=f"Reserve {model.token_x}", color="tab:blue")
    ax1.plot(df.index, df["Reserve_Y"], label=f"Reserve {model.token_y}", color="tab:green")
    ax1.set_xlabel("Time Step")
    ax1.set_ylabel("Reserves")

    ax2 = ax1.twinx()
    ax2.plot(df.index, df["Spot_Price"], label="Spot price", color="tab:orange", linestyle="--")
    ax2.set_ylabel(f"{model.token_y} per {model.token_x}", color="tab:orange")
    ax2.tick_params(axis="y", labelcolor="tab:orange")

    fig.suptitle("Pool Reserves and Price Over Time")
    fig.tight_layout()
    fig.legend(loc="upper left")
    plt.show()


if __name__ == "__main__":
    main()
