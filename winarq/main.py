"""
Windowed Selective Repeat File Transfer - Entry Points

Programs:
    winarq-sender FILE PORT      send FILE to the receiver on loopback PORT
    winarq-receiver FILE PORT    receive into FILE on UDP PORT
    winarq --single | --sweep | --config

Usage:
    winarq-receiver out.bin 9000 &
    winarq-sender in.bin 9000
    winarq --single --loss-rate 0.1
    winarq --sweep --runs 3
"""

import argparse
import os
import sys
from typing import List, Optional

from tqdm import tqdm

from winarq import config as cfg
from winarq.arq.receiver import SRReceiver
from winarq.arq.sender import SRSender
from winarq.channel.transport import UdpTransport
from winarq.config import ArqConfig, RESULTS_CSV, RUNS_PER_CONFIGURATION, SWEEP_DATA_SIZE
from winarq.errors import ArqError, SourceSinkError
from winarq.utils.logger import LogLevel, TransferLogger, set_logger

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def _add_protocol_options(parser: argparse.ArgumentParser):
    """Options shared by every program."""
    parser.add_argument('--ack-timeout', type=float, default=cfg.ACK_TIMEOUT,
                        help=f'Ack wait per attempt in seconds (default: {cfg.ACK_TIMEOUT})')
    parser.add_argument('--max-silent-attempts', type=int, default=cfg.MAX_SILENT_ATTEMPTS,
                        help=f'Silent attempts before giving up (default: {cfg.MAX_SILENT_ATTEMPTS})')
    parser.add_argument('--linger-timeout', type=float, default=cfg.LINGER_TIMEOUT,
                        help=f'Receiver quiet period after the last window (default: {cfg.LINGER_TIMEOUT})')
    parser.add_argument('--log-file', type=str, help='Also write log lines to this file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')


def _build_config(parser: argparse.ArgumentParser, args) -> ArqConfig:
    try:
        return ArqConfig(
            ack_timeout=args.ack_timeout,
            max_silent_attempts=args.max_silent_attempts,
            linger_timeout=args.linger_timeout
        )
    except ValueError as exc:
        parser.error(str(exc))


def _build_logger(parser: argparse.ArgumentParser, args, name: str) -> TransferLogger:
    try:
        logger = TransferLogger(
            name=name,
            level=LogLevel.DEBUG if args.verbose else cfg.DEFAULT_LOG_LEVEL,
            log_file=args.log_file
        )
    except OSError as exc:
        parser.error(f"cannot open log file {args.log_file}: {exc}")
    set_logger(logger)
    return logger


def _transfer_parser(prog: str, action: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description=f"{action} a file over UDP with windowed selective repeat"
    )
    parser.add_argument('file', help='File to ' + action.lower())
    parser.add_argument('port', type=int, help='UDP port')
    _add_protocol_options(parser)
    return parser


def _progress_callback(bar: tqdm):
    def update(done: int):
        bar.update(done - bar.n)
    return update


def sender_main(argv: Optional[List[str]] = None) -> int:
    """Send a file to the receiver on the loopback address."""
    parser = _transfer_parser('winarq-sender', 'Send')
    parser.add_argument('--host', default=cfg.SERVER_ADDR,
                        help=f'Receiver address (default: {cfg.SERVER_ADDR})')
    args = parser.parse_args(argv)
    config = _build_config(parser, args)
    logger = _build_logger(parser, args, "sender")

    try:
        try:
            source = open(args.file, 'rb')
        except OSError as exc:
            raise SourceSinkError(f"could not open {args.file}: {exc}") from exc

        with source:
            total = os.fstat(source.fileno()).st_size
            with UdpTransport.connect(args.port, args.host, config.ack_timeout) as transport, \
                    tqdm(total=total, unit='B', unit_scale=True, desc="Sending",
                         file=sys.stderr) as bar:
                sender = SRSender(transport, source, config, logger,
                                  on_progress=_progress_callback(bar))
                stats = sender.run()

    except ArqError as exc:
        logger.error(str(exc), "SENDER")
        print(f"winarq-sender: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("winarq-sender: interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED
    finally:
        logger.close()

    print(f"{stats['bytes_transferred']} bytes transferred")
    return EXIT_OK


def receiver_main(argv: Optional[List[str]] = None) -> int:
    """Receive a file on the given port."""
    parser = _transfer_parser('winarq-receiver', 'Receive')
    args = parser.parse_args(argv)
    config = _build_config(parser, args)
    logger = _build_logger(parser, args, "receiver")

    try:
        # Bind before creating the output so a busy port leaves it untouched
        with UdpTransport.bind(args.port) as transport:
            try:
                sink = open(args.file, 'wb')
            except OSError as exc:
                raise SourceSinkError(f"could not create {args.file}: {exc}") from exc

            with sink, tqdm(unit='B', unit_scale=True, desc="Receiving",
                            file=sys.stderr) as bar:
                receiver = SRReceiver(transport, sink, config, logger,
                                      on_progress=_progress_callback(bar))
                stats = receiver.run()

    except ArqError as exc:
        logger.error(str(exc), "RECEIVER")
        print(f"winarq-receiver: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("winarq-receiver: interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED
    finally:
        logger.close()

    print(f"{stats['bytes_written']} bytes transferred")
    return EXIT_OK


def run_single_simulation(args, config: ArqConfig) -> int:
    """Run one simulated transfer and print its metrics."""
    from winarq.simulation.simulator import Simulator, SimulatorConfig

    sim_config = SimulatorConfig(
        arq=config,
        data_size=args.data_size,
        loss_rate=args.loss_rate,
        burst=args.burst,
        duplicate_rate=args.duplicate_rate,
        reorder_rate=args.reorder_rate,
        delay_rate=args.delay_rate,
        seed=args.seed,
        log_level=LogLevel.DEBUG if args.verbose else cfg.DEFAULT_LOG_LEVEL
    )

    print("=" * 60)
    print("SIMULATED TRANSFER")
    print("=" * 60)
    print(f"\nConfiguration:")
    print(f"  Data size: {sim_config.data_size} bytes")
    print(f"  Loss rate: {'burst' if sim_config.burst else sim_config.loss_rate}")
    print(f"  Seed: {sim_config.seed}")

    results = Simulator(sim_config).run()

    print(f"\nTransfer Status:")
    print(f"  Complete: {results['complete']}")
    print(f"  Data Valid: {results['verification']['valid']}")
    print(f"  Simulation Time: {results['simulation_time']:.2f} s")
    if results['error']:
        print(f"  Error: {results['error']}")

    metrics = results['metrics']
    print(f"\nPerformance Metrics:")
    print(f"  Goodput: {metrics['goodput']:.2f} B/s")
    print(f"  Efficiency: {metrics['efficiency'] * 100:.2f}%")
    print(f"  Retransmissions: {metrics['retransmissions']}")
    print(f"  Timeouts: {metrics['timeouts']}")

    return EXIT_OK if results['verification']['valid'] else EXIT_FAILURE


def run_loss_sweep(args, config: ArqConfig) -> int:
    """Run the simulated loss sweep and save the results."""
    from winarq.simulation.runner import BatchRunner

    runner = BatchRunner(
        loss_rates=args.loss_rates,
        runs_per_config=args.runs,
        data_size=args.data_size,
        arq=config,
        burst=args.burst,
        output_file=args.output or RESULTS_CSV
    )

    print(f"Running {runner.total_runs} simulations...")
    if args.parallel:
        runner.run_parallel(max_workers=args.workers)
    else:
        runner.run_sequential()

    path = runner.save_results()
    if path:
        print(f"Results saved to: {path}")

    print("\n" + "=" * 60)
    print("GOODPUT BY LOSS RATE")
    print("=" * 60)
    print(runner.get_aggregated_results().to_string())

    summary = runner.get_summary()
    if 'error' in summary:
        print(summary['error'])
        return EXIT_FAILURE
    print(f"\nFailed runs: {summary['failed_runs']}/{summary['total_runs']}")
    return EXIT_OK


def show_config(args, config: ArqConfig) -> int:
    """Display current configuration."""
    print("=" * 60)
    print("TRANSFER CONFIGURATION")
    print("=" * 60)

    print(f"\nWire Format:")
    print(f"  Header: {cfg.HEADER_SIZE} bytes")
    print(f"  Payload: {config.data_size} bytes")
    print(f"  Packet: {config.packet_size} bytes")
    print(f"  Ack: {cfg.ACK_SIZE} byte")

    print(f"\nProtocol:")
    print(f"  Window size: {config.window_size}")
    print(f"  Window bases: 0..{config.max_start_seq} step {config.window_size}")
    print(f"  Ack timeout: {config.ack_timeout * 1000:.0f} ms")
    print(f"  Silent attempts: {config.max_silent_attempts}")
    print(f"  Dead peer after: {cfg.calculate_dead_peer_delay(config):.1f} s")
    print(f"  Linger: {config.linger_timeout * 1000:.0f} ms")

    print(f"\nGilbert-Elliott Channel:")
    print(f"  Good state loss: {cfg.GOOD_STATE_LOSS}")
    print(f"  Bad state loss: {cfg.BAD_STATE_LOSS}")
    print(f"  P(Good→Bad): {cfg.P_GOOD_TO_BAD}")
    print(f"  P(Bad→Good): {cfg.P_BAD_TO_GOOD}")
    print(f"  Average loss: {cfg.calculate_average_loss():.4f}")

    print(f"\nLoss Sweep:")
    print(f"  Loss rates: {cfg.LOSS_RATES}")
    print(f"  Runs per rate: {cfg.RUNS_PER_CONFIGURATION}")
    print(f"  Results: {cfg.RESULTS_CSV}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog='winarq',
        description="Windowed selective repeat transfer: simulation and configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Single simulated transfer:
    winarq --single --loss-rate 0.1

  Loss sweep:
    winarq --sweep --runs 3 --loss-rates 0 0.1 0.2

  Show configuration:
    winarq --config
        """
    )

    # Mode selection
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument('--single', action='store_true', help='Run a single simulated transfer')
    mode.add_argument('--sweep', action='store_true', help='Run the loss-rate sweep')
    mode.add_argument('--config', action='store_true', help='Show configuration')

    # Simulation options
    parser.add_argument('--loss-rate', type=float, default=0.0,
                        help='Loss probability per datagram (default: 0)')
    parser.add_argument('--duplicate-rate', type=float, default=0.0)
    parser.add_argument('--reorder-rate', type=float, default=0.0)
    parser.add_argument('--delay-rate', type=float, default=0.0)
    parser.add_argument('--burst', action='store_true',
                        help='Use the Gilbert-Elliott burst loss model')
    parser.add_argument('--seed', '-s', type=int, default=cfg.RNG_SEED_BASE)
    parser.add_argument('--data-size', type=int, default=SWEEP_DATA_SIZE,
                        help=f'Bytes per simulated transfer (default: {SWEEP_DATA_SIZE})')

    # Sweep options
    parser.add_argument('--loss-rates', type=float, nargs='+',
                        help=f'Loss rates to sweep (default: {cfg.LOSS_RATES})')
    parser.add_argument('--runs', '-r', type=int, default=RUNS_PER_CONFIGURATION,
                        help=f'Runs per loss rate (default: {RUNS_PER_CONFIGURATION})')
    parser.add_argument('--parallel', action='store_true', help='Run simulations in parallel')
    parser.add_argument('--workers', type=int, default=None, help='Number of parallel workers')
    parser.add_argument('--output', '-o', type=str, help='CSV output path')

    _add_protocol_options(parser)

    args = parser.parse_args(argv)
    config = _build_config(parser, args)
    logger = _build_logger(parser, args, "winarq")

    try:
        if args.single:
            return run_single_simulation(args, config)
        elif args.sweep:
            return run_loss_sweep(args, config)
        return show_config(args, config)
    except ValueError as exc:
        print(f"winarq: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    finally:
        logger.close()


if __name__ == "__main__":
    sys.exit(main())
