"""
Batch Runner for Loss Sweep Simulations

This module runs the simulated transfer across a range of loss rates,
several seeded runs each, and collects the outcomes in a pandas DataFrame.
"""

import os
import time
import multiprocessing
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import pandas as pd
from tqdm import tqdm

from winarq.config import (
    ArqConfig, LOSS_RATES, RUNS_PER_CONFIGURATION,
    RNG_SEED_BASE, RESULTS_CSV, SWEEP_DATA_SIZE
)
from winarq.errors import ArqError
from winarq.simulation.simulator import Simulator, SimulatorConfig
from winarq.utils.logger import LogLevel


@dataclass
class RunConfig:
    """Configuration for a single simulation run."""
    loss_rate: float
    run_id: int
    seed: int
    data_size: int
    burst: bool = False
    arq: Optional[ArqConfig] = None


def run_single_simulation(run_config: RunConfig) -> Dict:
    """
    Run a single simulation with given configuration.

    Module-level so it can be shipped to worker processes.

    Args:
        run_config: Configuration for this run

    Returns:
        Dictionary with results
    """
    try:
        config = SimulatorConfig(
            arq=run_config.arq or ArqConfig(),
            data_size=run_config.data_size,
            loss_rate=run_config.loss_rate,
            burst=run_config.burst,
            seed=run_config.seed,
            log_level=LogLevel.CRITICAL  # Quiet for batch runs
        )

        results = Simulator(config).run()
        metrics = results['metrics']

        return {
            'loss_rate': run_config.loss_rate,
            'run_id': run_config.run_id,
            'seed': run_config.seed,
            'goodput': metrics['goodput'],
            'efficiency': metrics['efficiency'],
            'retransmissions': metrics['retransmissions'],
            'retransmission_rate': metrics['retransmission_rate'],
            'timeouts': metrics['timeouts'],
            'total_time': results['simulation_time'],
            'observed_loss': results['link']['forward_channel']['observed_loss'],
            'data_valid': results['verification']['valid'],
            'complete': results['complete'],
            'error': results['error']
        }

    except ArqError as e:
        return {
            'loss_rate': run_config.loss_rate,
            'run_id': run_config.run_id,
            'seed': run_config.seed,
            'goodput': 0.0,
            'complete': False,
            'error': str(e)
        }


class BatchRunner:
    """
    Batch Runner for loss-rate sweeps.

    Attributes:
        loss_rates: Forward and reverse loss probabilities to test
        runs_per_config: Number of runs per loss rate
        data_size: Size of data to transfer
        results: One row per completed run
    """

    def __init__(
        self,
        loss_rates: Optional[List[float]] = None,
        runs_per_config: int = RUNS_PER_CONFIGURATION,
        data_size: int = SWEEP_DATA_SIZE,
        arq: Optional[ArqConfig] = None,
        burst: bool = False,
        output_file: str = RESULTS_CSV,
        on_progress: Optional[Callable[[int, int, dict], None]] = None
    ):
        """
        Initialize batch runner.

        Args:
            loss_rates: Loss rates to sweep (default from config)
            runs_per_config: Number of runs per loss rate
            data_size: Size of data to transfer
            arq: Protocol parameters for every run
            burst: Use the Gilbert-Elliott burst model instead of loss_rates
            output_file: Path to output CSV file
            on_progress: Callback(completed, total, result) per run
        """
        self.loss_rates = LOSS_RATES if loss_rates is None else loss_rates
        self.runs_per_config = runs_per_config
        self.data_size = data_size
        self.arq = arq
        self.burst = burst
        self.output_file = output_file
        self.on_progress = on_progress

        self.results: List[Dict] = []

        self.total_runs = len(self.loss_rates) * self.runs_per_config
        self.completed_runs = 0
        self.start_time = 0.0

    def _generate_run_configs(self) -> List[RunConfig]:
        """Generate all run configurations."""
        configs = []

        for index, loss_rate in enumerate(self.loss_rates):
            for run_id in range(self.runs_per_config):
                # Unique seed for each run
                seed = RNG_SEED_BASE + index * 1000 + run_id * 10000
                configs.append(RunConfig(
                    loss_rate=loss_rate,
                    run_id=run_id,
                    seed=seed,
                    data_size=self.data_size,
                    burst=self.burst,
                    arq=self.arq
                ))

        return configs

    def _record(self, result: Dict):
        self.results.append(result)
        self.completed_runs += 1
        if self.on_progress:
            self.on_progress(self.completed_runs, self.total_runs, result)

    def run_sequential(self) -> pd.DataFrame:
        """
        Run all simulations sequentially.

        Returns:
            DataFrame with one row per run
        """
        configs = self._generate_run_configs()
        self.results = []
        self.completed_runs = 0
        self.start_time = time.time()

        for config in tqdm(configs, desc="Simulations"):
            self._record(run_single_simulation(config))

        return self.to_dataframe()

    def run_parallel(self, max_workers: Optional[int] = None) -> pd.DataFrame:
        """
        Run simulations in parallel using multiprocessing.

        Args:
            max_workers: Number of parallel workers (default: CPU count)

        Returns:
            DataFrame with one row per run
        """
        if max_workers is None:
            max_workers = multiprocessing.cpu_count()

        configs = self._generate_run_configs()
        self.results = []
        self.completed_runs = 0
        self.start_time = time.time()

        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(run_single_simulation, config) for config in configs]
            for future in tqdm(as_completed(futures), total=len(futures), desc="Simulations"):
                self._record(future.result())

        return self.to_dataframe()

    def to_dataframe(self) -> pd.DataFrame:
        """Results as a DataFrame ordered by loss rate and run."""
        df = pd.DataFrame(self.results)
        if df.empty:
            return df
        return df.sort_values(['loss_rate', 'run_id']).reset_index(drop=True)

    def save_results(self, filepath: Optional[str] = None) -> Optional[str]:
        """
        Save results to CSV file.

        Args:
            filepath: Output file path (default: self.output_file)

        Returns:
            Path written, or None if there was nothing to save
        """
        filepath = filepath or self.output_file

        if not self.results:
            return None

        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)

        self.to_dataframe().to_csv(filepath, index=False)
        return filepath

    def get_aggregated_results(self) -> pd.DataFrame:
        """
        Get aggregated statistics per loss rate.

        Failed runs are excluded.

        Returns:
            DataFrame indexed by loss rate
        """
        df = self.to_dataframe()
        if df.empty:
            return df

        rates = pd.Index(sorted(df['loss_rate'].unique()), name='loss_rate')
        ok = df[df['error'].isna()]
        grouped = ok.groupby('loss_rate')

        # Rates where every run failed keep a row with NaN goodput
        aggregated = pd.DataFrame(index=rates)
        aggregated['goodput_mean'] = grouped['goodput'].mean()
        aggregated['goodput_std'] = grouped['goodput'].std()
        aggregated['goodput_std'] = aggregated['goodput_std'].fillna(0.0)
        aggregated['goodput_min'] = grouped['goodput'].min()
        aggregated['goodput_max'] = grouped['goodput'].max()
        aggregated['efficiency_mean'] = grouped['efficiency'].mean()
        aggregated['retx_mean'] = grouped['retransmissions'].mean()
        aggregated['runs'] = grouped.size()
        aggregated['runs'] = aggregated['runs'].fillna(0).astype(int)
        aggregated['failures'] = df.groupby('loss_rate')['error'].count()
        return aggregated

    def get_summary(self) -> Dict:
        """
        Summarize the sweep.

        Returns:
            Dictionary with run counts and goodput at the extremes
        """
        aggregated = self.get_aggregated_results()

        if aggregated.empty:
            return {'error': 'No results available'}

        summary = {
            'total_runs': len(self.results),
            'failed_runs': int(aggregated['failures'].sum()),
            'elapsed': time.time() - self.start_time
        }

        goodput = aggregated['goodput_mean'].dropna()
        if not goodput.empty:
            summary.update({
                'best_loss_rate': float(goodput.idxmax()),
                'best_goodput': float(goodput.max()),
                'worst_loss_rate': float(goodput.idxmin()),
                'worst_goodput': float(goodput.min())
            })
        return summary


if __name__ == "__main__":
    print("=" * 60)
    print("BATCH RUNNER TEST")
    print("=" * 60)

    runner = BatchRunner(loss_rates=[0.0, 0.1], runs_per_config=2, data_size=10 * 1024)

    print(f"\nTest configuration:")
    print(f"  Loss rates: {runner.loss_rates}")
    print(f"  Runs per config: {runner.runs_per_config}")
    print(f"  Total runs: {runner.total_runs}")

    runner.run_sequential()
    print(runner.get_aggregated_results())
