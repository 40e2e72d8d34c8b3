import os, argparse, logging
from argparse import Namespace

import trajsmooth
from trajsmooth import reader


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s: %(message)s")
logger = logging.getLogger("main_predict")


parser = argparse.ArgumentParser("Predict smoothed expression of fitted lineage GAMs on a uniform pseudotime grid")
parser.add_argument("--config", type=str, required=False, default=None,
                   help='Path to existing config JSON file (overrides all other arguments)')

# All other arguments made optional
optional_args = parser.add_argument_group('Optional arguments (ignored when using --config)')
optional_args.add_argument("-F", "--fit_dir", type=str, required=False, default=None, help='the directory holding coefficients.csv, design.csv, lpmatrix.csv and pseudotime.csv')
optional_args.add_argument("-G", "--genes", type=str, required=False, default=None, help='comma separated gene names to predict, all genes if omitted')
optional_args.add_argument("-N", "--n_points", type=int, required=False, default=100, help='the number of grid points per lineage')
optional_args.add_argument("-O", "--output", type=str, required=False, default="smoothers.csv", help='the csv file to write the predictions to')
optional_args.add_argument("--tidy", type=str, required=False, default="True", help='whether to write the tidy table instead of the gene x grid matrix, boolen value, default True')

args = parser.parse_args()

# Configuration handling
if args.config:
    config = trajsmooth.PredictConfig(config=args.config)
    args = Namespace(**config.raw_args)
else:
    if args.fit_dir is None:
        parser.error("The following arguments are required without --config: -F/--fit_dir")
    args.tidy = args.tidy.lower() in ("true", "1", "yes")
    config = trajsmooth.PredictConfig(args=args)


fit = reader.load_shared_fit(args.fit_dir)
genes = args.genes.split(",") if args.genes else list(fit.gene_names)
logger.info(f"loaded fit of {len(fit.gene_names)} genes and {fit.n_lineages} lineages from {args.fit_dir}")

smoothers = trajsmooth.predict_smooth(fit, genes, **config.predict_kwargs(shared=True))

out_dir = os.path.dirname(os.path.abspath(args.output))
os.makedirs(out_dir, exist_ok=True)
smoothers.to_csv(args.output, index=not config.prediction_config['tidy'])
config.save(os.path.splitext(args.output)[0] + '_config.json')
logger.info(f"wrote {smoothers.shape[0]} rows to {args.output}")
