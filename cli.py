#!/usr/bin/env python3
"""
pLTV Simulation Lab - CLI Tool

A command-line interface for generating synthetic game cohorts, building
features, training pLTV models and simulating activation.

Usage:
    python cli.py presets               # List generator presets
    python cli.py preview               # Analytical expectations for a config
    python cli.py generate              # Generate and write the five CSV tables
    python cli.py verify                # Recompute statistics from written tables
    python cli.py features             # Build the feature matrix and correlation report
    python cli.py train                 # Train one (or all) model kinds
    python cli.py activate              # Simulate top-K activation for a model
    python cli.py economics             # Economic impact across targeting depths
    python cli.py uplift                # Simulate a treatment/control uplift test
    python cli.py compare               # Compare all models against early-revenue baselines
    python cli.py sweep                 # Early-signal strength across coupling levels
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from simulation import (
    PLTVError,
    SynthConfig,
    PRESETS,
    get_preset,
    generate_synthetic_data,
    compute_preview,
    compute_stats_from_tables,
    write_tables,
    read_tables
)
from simulation.io import TABLE_FILENAMES
from features import (
    FeatureBuildConfig,
    build_feature_matrix,
    numeric_feature_columns,
    correlation_report,
    default_sweep_configs,
    sweep_configs,
    leakage_templates
)
from features.templates import templates_by_category
from models import TrainedModelResult, train_model, generate_baseline_model, MODEL_KINDS
from analysis import (
    ActivationConfig,
    simulate_activation,
    compute_economic_impact,
    simulate_uplift,
    extract_protocol,
    protocols_match,
    compute_aulc,
    compute_coverage,
    compute_overprediction_rate,
    estimate_inference_cost,
    generate_recommendations,
    feature_importance_delta
)
from analysis.comparison import recommendations_to_dicts


class Colors:
    """ANSI color codes for terminal output."""
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'


def colorize(text: str, color: str) -> str:
    return f"{color}{text}{Colors.ENDC}"


def print_header(text: str):
    print()
    print(colorize("=" * 60, Colors.CYAN))
    print(colorize(f"  {text}", Colors.BOLD + Colors.CYAN))
    print(colorize("=" * 60, Colors.CYAN))
    print()


def print_subheader(text: str):
    print()
    print(colorize(f"--- {text} ---", Colors.YELLOW))
    print()


def print_metric(name: str, value: str, note: Optional[str] = None):
    """Print one labelled value, with an optional colored note."""
    if note:
        note_color = Colors.RED if note.startswith('-') else Colors.GREEN
        print(f"  {colorize(name + ':', Colors.BOLD)} {value}  ({colorize(note, note_color)})")
    else:
        print(f"  {colorize(name + ':', Colors.BOLD)} {value}")


def export_report(report: Dict, output_path: Optional[str]):
    """Write a command's report as JSON when ``--output`` is given."""
    if not output_path:
        return
    with open(output_path, 'w') as f:
        json.dump(report, f, indent=2, default=str)
    print(colorize(f"\nReport exported to: {output_path}", Colors.GREEN))


# ---------------------------------------------------------------------------
# Shared pipeline steps
# ---------------------------------------------------------------------------

def build_config(args) -> SynthConfig:
    """Preset or JSON config, then flag overrides, then validation."""
    if args.config:
        with open(args.config) as f:
            config = SynthConfig.from_dict(json.load(f))
    else:
        config = get_preset(args.preset)

    overrides = {
        ('population', 'total_users'): args.users,
        ('population', 'install_window_days'): args.window,
        ('monetization', 'payer_rate'): args.payer_rate,
        ('simulation', 'seed'): args.seed,
    }
    for (section, key), value in overrides.items():
        if value is not None:
            setattr(getattr(config, section), key, value)

    if args.inject_leakage:
        config.noise.inject_leakage = True
    return config.validate()


def load_tables(args, config: SynthConfig) -> Dict[str, List]:
    """Tables from ``--data-dir`` when all five files exist, else generated in memory."""
    data_dir = Path(args.data_dir)
    if all((data_dir / name).exists() for name in TABLE_FILENAMES.values()):
        print(f"Reading tables from {data_dir}...")
        return read_tables(data_dir)

    print(f"Generating {config.population.total_users:,} users (seed {config.simulation.seed})...")
    result = generate_synthetic_data(config)
    return {
        'players': result.players,
        'events': result.events,
        'payments': result.payments,
        'ua_costs': result.ua_costs,
        'labels': result.labels,
    }


def build_feature_config(args) -> FeatureBuildConfig:
    feature_config = FeatureBuildConfig()
    if args.templates:
        feature_config.selected_templates = [t.strip() for t in args.templates.split(',') if t.strip()]
    if args.windows:
        feature_config.selected_windows = [int(w) for w in args.windows.split(',') if w.strip()]
    feature_config.include_leakage_feature = args.leakage_feature
    return feature_config


def build_matrix(args, config: SynthConfig) -> pd.DataFrame:
    tables = load_tables(args, config)
    return build_feature_matrix(tables['players'], tables['events'], tables['payments'],
                                tables['labels'], build_feature_config(args))


def train_from_args(args, matrix: pd.DataFrame, model_type: str) -> TrainedModelResult:
    features = numeric_feature_columns(matrix)
    return train_model(matrix, features, target=args.target, model_type=model_type,
                       split_strategy=args.split, leakage_enabled=args.leakage_feature, seed=args.seed)


def activation_config(args) -> ActivationConfig:
    return ActivationConfig(cpi=args.cpi, revenue_multiplier=args.revenue_multiplier,
                            conversion_noise=args.conversion_noise, delivery_rate=args.delivery_rate)


def print_model_metrics(model: TrainedModelResult):
    print_metric("Model", model.model_label)
    print_metric("Target", model.target)
    print_metric("Split", f"{model.split_strategy} ({model.train_size:,} train / {model.test_size:,} test)")
    print_metric("MAE", f"${model.mae:.2f}")
    print_metric("RMSE", f"${model.rmse:.2f}")
    print_metric("R2", f"{model.r2:.3f}")
    print_metric("Spearman", f"{model.spearman:.3f}")
    print_metric("Calibration Error", f"${model.calibration_error:.2f}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_presets():
    """List generator presets."""
    print_header("pLTV Simulation Lab - Presets")

    for name, preset in PRESETS.items():
        cfg = preset['config']
        print(f"  {colorize(name, Colors.BOLD):<30} {preset['label']}")
        print(f"      {preset['description']}")
        print(f"      users={cfg.population.total_users:,}  payer_rate={cfg.monetization.payer_rate:.0%}  "
              f"distribution={cfg.monetization.revenue_distribution}  "
              f"correlation={cfg.behavioral.engage_pay_correlation}")
    print()


def cmd_preview(config: SynthConfig, output_path: Optional[str] = None):
    """Show analytical expectations without generating."""
    print_header("Config Preview")

    preview = compute_preview(config)
    print_metric("Users", f"{config.population.total_users:,}")
    print_metric("Expected Payer Rate", f"{preview['expected_payer_pct']:.1f}%")
    print_metric("Expected Revenue", f"${preview['expected_total_revenue']:,.0f}")
    print_metric("Expected ARPU", f"${preview['expected_arpu']:.2f}")
    print_metric("Expected ARPPU", f"${preview['expected_arppu']:.2f}")
    print_metric("Expected Transactions", f"{preview['expected_txn_count']:,}")
    print_metric("Estimated Size", f"{preview['estimated_file_size_kb']:,} KB")
    print()

    export_report({'config': config.to_dict(), 'preview': preview}, output_path)


def cmd_generate(config: SynthConfig, data_dir: str, output_path: Optional[str] = None):
    """Generate the five tables, write them and print cohort statistics."""
    print_header("Generating Synthetic Cohort")

    result = generate_synthetic_data(config)
    paths = write_tables(result, data_dir)
    stats = result.stats

    print_subheader("Cohort")
    print_metric("Users", f"{stats.users:,}")
    print_metric("Payer Rate", f"{stats.payer_rate:.2%}",
                 f"{(stats.payer_rate - config.monetization.payer_rate) * 100:+.1f}pp vs target")
    print_metric("Total Revenue (D90)", f"${stats.total_revenue:,.2f}")
    print_metric("ARPU", f"${stats.arpu:.2f}")
    print_metric("ARPPU", f"${stats.arppu:.2f}")
    print_metric("Gini", f"{stats.gini_coefficient:.3f}")

    print_subheader("Tables")
    print(f"  {'Table':<12} {'Rows':>10}  File")
    print("  " + "-" * 50)
    row_counts = {
        'players': stats.players_rows,
        'events': stats.events_rows,
        'payments': stats.payments_rows,
        'ua_costs': stats.ua_costs_rows,
        'labels': stats.labels_rows,
    }
    for kind, path in paths.items():
        print(f"  {kind:<12} {row_counts[kind]:>10,}  {path}")

    print_subheader("LTV Distribution (10 bins)")
    print("  " + " ".join(f"{c:>5}" for c in stats.ltv_distribution))
    print()

    export_report({'generated_at': datetime.now().isoformat(), 'config': config.to_dict(),
                   'stats': vars(stats)}, output_path)


def cmd_verify(data_dir: str):
    """Recompute statistics from written tables."""
    print_header(f"Verifying Tables in {data_dir}")

    tables = read_tables(data_dir)
    stats = compute_stats_from_tables(tables['players'], tables['events'], tables['payments'],
                                      tables['ua_costs'], tables['labels'])
    print_metric("Users", f"{stats.users:,}")
    print_metric("Payer Rate", f"{stats.payer_rate:.2%}")
    print_metric("Total Revenue (D90)", f"${stats.total_revenue:,.2f}")
    print_metric("Gini", f"{stats.gini_coefficient:.3f}")
    print()


def cmd_features(args, config: SynthConfig):
    """Build the feature matrix and print the correlation report."""
    print_header("Feature Matrix")

    if args.list_templates:
        for category, templates in templates_by_category().items():
            print_subheader(category.title())
            for t in templates:
                flag = colorize(' [LEAKAGE]', Colors.RED) if t.is_leaky else ''
                window = ' (windowed)' if t.requires_window else ''
                print(f"  {t.id:<24} {t.description}{window}{flag}")
        print()
        return

    matrix = build_matrix(args, config)
    features = numeric_feature_columns(matrix)
    report = correlation_report(matrix, config)

    print_metric("Rows", f"{report['dataset_rows']:,}")
    print_metric("Features", str(len(features)))
    print_metric("Payer Rate (D30)", f"{report['payer_rate_pct']:.2f}%")
    print_metric("Corr(payment_sum_7d, LTV30)", f"{report['target_corr_ltv7_vs_ltv30']:.3f}")

    leaky = {t.id for t in leakage_templates()}
    print_subheader("Feature Correlations")
    print(f"  {'Feature':<28} {'r(LTV30)':>9} {'r(LTV90)':>9} {'Payer':>9} {'Non-payer':>10} {'Sep':>7}")
    print("  " + "-" * 78)
    for _, row in report['features'].iterrows():
        name = row['feature']
        sep = f"{row['separation_ratio']:.2f}" if pd.notna(row['separation_ratio']) else "inf"
        label = colorize(f"{name:<28}", Colors.RED) if name in leaky else f"{name:<28}"
        print(f"  {label} {row['corr_ltv_d30']:>9.3f} {row['corr_ltv_d90']:>9.3f} "
              f"{row['mean_payer']:>9.2f} {row['mean_nonpayer']:>10.2f} {sep:>7}")
    print()

    if args.output:
        report = dict(report, features=report['features'].to_dict('records'))
        export_report(report, args.output)


def cmd_sweep(args, config: SynthConfig):
    """Compare early-signal strength across engagement/payment coupling levels."""
    print_header("Config Sweep")

    configs = default_sweep_configs(users=config.population.total_users, seed=config.simulation.seed)
    print(f"Generating {len(configs)} cohorts of {config.population.total_users:,} users...")
    sweep = sweep_configs(configs)

    print(f"\n  {'Config':<12} {'Payer%':>7} {'Late%':>6} {'Deep%':>6} {'r(flag)':>8} "
          f"{'r(pay7)':>8} {'r(pay14)':>9} {'r(sess7)':>9} {'r(gap)':>7} {'SessSep':>8}")
    print("  " + "-" * 90)
    for _, r in sweep.iterrows():
        print(f"  {r['label']:<12} {r['payer_pct']:>7.1f} {r['late_monetizer_pct']:>6.1f} "
              f"{r['deep_late_pct']:>6.1f} {r['corr_payer_flag']:>8.3f} {r['corr_payment_sum_7d']:>8.3f} "
              f"{r['corr_payment_sum_14d']:>9.3f} {r['corr_session_count_7d']:>9.3f} "
              f"{r['corr_last_login_gap']:>7.3f} {r['session_separation']:>8.2f}")
    print()

    export_report({'generated_at': datetime.now().isoformat(),
                   'sweep': sweep.to_dict('records')}, args.output)


def cmd_train(args, config: SynthConfig):
    """Train one model kind (or all) and print metrics, lift and importances."""
    print_header("Model Training")

    matrix = build_matrix(args, config)
    kinds = MODEL_KINDS if args.model == 'all' else [args.model]
    results = []

    for kind in kinds:
        print(f"Training {kind}...")
        model = train_from_args(args, matrix, kind)
        results.append(model)

        print_subheader(model.model_label)
        print_model_metrics(model)

        print()
        print(f"  {'Top %':>6} {'Lift':>7} {'Precision':>10} {'Recall':>8} {'Value':>7}")
        print("  " + "-" * 44)
        for _, p in model.lift_curve.iterrows():
            print(f"  {p['top_percent']:>5}% {p['lift']:>7.2f} {p['precision']:>10.3f} "
                  f"{p['recall']:>8.3f} {p['value_captured']:>7.3f}")

        print()
        print(f"  {'Feature':<28} {'Importance':>10}  Direction")
        print("  " + "-" * 52)
        for _, s in model.shap_values.iterrows():
            print(f"  {s['feature']:<28} {s['mean_abs_shap']:>10.3f}  {s['direction']}")

    print()
    export_report({'generated_at': datetime.now().isoformat(),
                   'models': [m.to_dict() for m in results]}, args.output)


def cmd_activate(args, config: SynthConfig):
    """Simulate activating the top-K% of users by predicted value."""
    print_header(f"Activation Simulation: Top {args.top_k:g}%")

    matrix = build_matrix(args, config)
    model = train_from_args(args, matrix, 'gbt' if args.model == 'all' else args.model)
    run = simulate_activation(model, args.top_k, activation_config(args), seed=args.seed)

    print_metric("Model", run.model_label)
    print_metric("Users Sent", f"{run.users_sent:,}")
    print_metric("Users Delivered", f"{run.users_delivered:,}")
    print_metric("Cost", f"${run.cost:,.2f}")
    print_metric("Revenue (90d)", f"${run.revenue_90d:,.2f}")
    print_metric("Profit", f"${run.profit:,.2f}")
    print_metric("ROI", f"{run.roi:.2f}x", f"{run.roi * 100:+.0f}%")

    print_subheader("Cumulative Revenue")
    for _, point in run.revenue_curve.iterrows():
        print(f"  Day {int(point['day']):>3}: ${point['revenue']:>12,.2f}")
    print()

    export_report(dict(run.summary(), revenue_curve=run.revenue_curve.to_dict('records')), args.output)


def cmd_economics(args, config: SynthConfig):
    """Economic impact table across targeting depths."""
    print_header("Economic Impact")

    matrix = build_matrix(args, config)
    model = train_from_args(args, matrix, 'gbt' if args.model == 'all' else args.model)
    table = compute_economic_impact(model, activation_config(args), seed=args.seed)

    print(f"  {'Top %':>6} {'K':>6} {'Cost':>10} {'Revenue':>11} {'Profit':>11} {'ROAS':>6} {'Uplift':>8}")
    print("  " + "-" * 64)
    for _, r in table.iterrows():
        print(f"  {r['top_k_percent']:>5}% {int(r['k']):>6} ${r['cost']:>9,.0f} ${r['revenue']:>10,.0f} "
              f"${r['profit']:>10,.0f} {r['roas']:>6.2f} {r['uplift_vs_baseline']:>+8.1%}")
    print()

    export_report({'model': model.summary(), 'economic_impact': table.to_dict('records')}, args.output)


def cmd_uplift(args, config: SynthConfig):
    """Simulate a randomized treatment and report ATE / CATE by decile."""
    print_header("Uplift Simulation")

    matrix = build_matrix(args, config)
    model = train_from_args(args, matrix, 'gbt' if args.model == 'all' else args.model)
    result = simulate_uplift(model, args.treatment_fraction, seed=args.seed)

    print_metric("Treatment / Control", f"{result.treatment_size:,} / {result.control_size:,}")
    print_metric("Treatment Avg LTV", f"${result.treatment_avg_ltv:.2f}")
    print_metric("Control Avg LTV", f"${result.control_avg_ltv:.2f}")
    print_metric("ATE", f"${result.ate:.2f}")

    print_subheader("CATE by Predicted-Value Decile")
    for _, d in result.cate_by_decile.iterrows():
        print(f"  D{int(d['decile']):<3} CATE ${d['cate']:>8.2f}   "
              f"(treated ${d['treatment_ltv']:.2f} vs control ${d['control_ltv']:.2f})")
    print()

    export_report(dict(result.summary(),
                       cate_by_decile=result.cate_by_decile.to_dict('records'),
                       uplift_curve=result.uplift_curve.to_dict('records')), args.output)


def cmd_compare(args, config: SynthConfig):
    """Train every model kind plus early-revenue baselines and compare them."""
    print_header("Model Comparison")

    matrix = build_matrix(args, config)
    models = [train_from_args(args, matrix, kind) for kind in MODEL_KINDS]
    for baseline in ('ltv3d', 'ltv7d'):
        models.append(generate_baseline_model(matrix, baseline, args.target, args.split, args.seed))

    reference = extract_protocol(models[0])
    print(f"  {'Model':<28} {'Spearman':>9} {'AULC':>7} {'Calib':>8} {'Over%':>7} {'Cov':>6} {'Cost':>6}")
    print("  " + "-" * 77)
    for m in models:
        check = protocols_match(reference, extract_protocol(m))
        marker = '' if check['match'] else colorize(' *', Colors.YELLOW)
        print(f"  {m.model_label:<28} {m.spearman:>9.3f} {compute_aulc(m.lift_curve):>7.3f} "
              f"{m.calibration_error:>8.2f} {compute_overprediction_rate(m.test_predictions):>7.1%} "
              f"{compute_coverage(matrix, m.features):>6.2f} {estimate_inference_cost(m):>6.2f}{marker}")
    print(colorize("  * evaluation protocol differs from the first model", Colors.YELLOW))

    recs = generate_recommendations(models, args.top_k)
    print_subheader("Recommendations")
    for rec in recs:
        print(f"  {colorize(rec.badge, Colors.GREEN)}: {models[rec.model_index].model_label}")
        print(f"      {rec.reason}")

    print_subheader("Importance Shift: GBT vs Random Forest")
    delta = feature_importance_delta(models[0], models[1])
    for _, d in delta.head(8).iterrows():
        print(f"  {d['feature']:<28} {d['importance_a']:>7.3f} -> {d['importance_b']:>7.3f} ({d['delta']:+.3f})")
    print()

    export_report({'models': [m.summary() for m in models],
                   'recommendations': recommendations_to_dicts(recs)}, args.output)


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for every command."""
    parser = argparse.ArgumentParser(
        description="pLTV Simulation Lab - synthetic cohorts, pLTV models and activation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py presets
  python cli.py preview --preset whale_mmo
  python cli.py generate --users 5000 --seed 7 --data-dir data
  python cli.py features --windows 3,7,14 --templates session_count,payment_sum,payer_flag
  python cli.py train --model all --target ltv90 --split time
  python cli.py train --model gbt --leakage-feature
  python cli.py generate --inject-leakage --data-dir leaky
  python cli.py activate --top-k 10 --cpi 2.5
  python cli.py compare --output comparison.json
  python cli.py sweep --users 1000

Config Overrides:
  Start from --preset or --config file.json, then override single fields:
  python cli.py generate --preset midcore --users 3000 --payer-rate 0.05
        """
    )

    parser.add_argument('command', choices=[
        'presets', 'preview', 'generate', 'verify', 'features', 'train',
        'activate', 'economics', 'uplift', 'compare', 'sweep'
    ], help='Command to run')

    # Generator config
    parser.add_argument('--preset', default='balanced', choices=list(PRESETS),
                        help='Generator preset (default: balanced)')
    parser.add_argument('--config', type=str, help='JSON generator config file')
    parser.add_argument('--users', type=int)
    parser.add_argument('--window', type=int, help='Install window in days')
    parser.add_argument('--payer-rate', type=float)
    parser.add_argument('--seed', type=int)
    parser.add_argument('--inject-leakage', action='store_true',
                        help='Let later revenue bleed into generated D3/D7 labels')
    parser.add_argument('--data-dir', default='data',
                        help='Directory for the five CSV tables (default: data)')

    # Features
    parser.add_argument('--templates', type=str, help='Comma-separated feature templates')
    parser.add_argument('--windows', type=str, help='Comma-separated day windows')
    parser.add_argument('--leakage-feature', action='store_true',
                        help='Include the D8-30 future-payment feature in the matrix')
    parser.add_argument('--list-templates', action='store_true')

    # Training
    parser.add_argument('--model', default='gbt', choices=list(MODEL_KINDS) + ['all'])
    parser.add_argument('--target', default='ltv90', choices=['ltv30', 'ltv90'])
    parser.add_argument('--split', default='random', choices=['random', 'time'])

    # Activation / uplift
    parser.add_argument('--top-k', type=float, default=10, help='Top-K percent (default: 10)')
    parser.add_argument('--cpi', type=float, default=2.0)
    parser.add_argument('--revenue-multiplier', type=float, default=1.0)
    parser.add_argument('--conversion-noise', type=float, default=0.2)
    parser.add_argument('--delivery-rate', type=float, default=0.8)
    parser.add_argument('--treatment-fraction', type=float, default=0.5)

    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    parser.add_argument('--output', '-o', type=str, help='JSON report output path')

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    if args.command == 'presets':
        cmd_presets()
        return

    try:
        config = build_config(args)
        if args.seed is None:
            args.seed = config.simulation.seed

        if args.command == 'preview':
            cmd_preview(config, args.output)
        elif args.command == 'generate':
            cmd_generate(config, args.data_dir, args.output)
        elif args.command == 'verify':
            cmd_verify(args.data_dir)
        elif args.command == 'features':
            cmd_features(args, config)
        elif args.command == 'train':
            cmd_train(args, config)
        elif args.command == 'activate':
            cmd_activate(args, config)
        elif args.command == 'economics':
            cmd_economics(args, config)
        elif args.command == 'uplift':
            cmd_uplift(args, config)
        elif args.command == 'sweep':
            cmd_sweep(args, config)
        elif args.command == 'compare':
            cmd_compare(args, config)
    except (PLTVError, FileNotFoundError) as e:
        print(colorize(f"Error: {e}", Colors.RED))
        sys.exit(1)


if __name__ == '__main__':
    main()
