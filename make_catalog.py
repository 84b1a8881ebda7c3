import os
import json
import pickle
import argparse

import icefront


def get_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Detect ice-front crossings and rampart-moat structures in ATL06 granules')
    parser.add_argument('filelist',
                        help='JSON list of ATL06 granule names')
    parser.add_argument('--datapath', default='.',
                        help='directory holding the granules')
    parser.add_argument('--maskfile', required=True,
                        help='BedMachine-style netCDF mask')
    parser.add_argument('--kdt-file', default=None,
                        help='pickled KD-Tree cache for the mask grid')
    parser.add_argument('--output-path', default='.',
                        help='directory for the profile and feature pickles')
    parser.add_argument('--name', default=None,
                        help='prefix of the output files, defaults to the file list name')
    parser.add_argument('--config', default=None,
                        help='JSON file of detection parameters')
    parser.add_argument('--nproc', type=int, default=8)
    parser.add_argument('--overwrite', action='store_true',
                        help='repeat the ingest even if the profile pickle exists')
    parser.add_argument('-V', '--verbose', action='store_true')
    return parser.parse_args(argv)


def main(argv=None):
    args = get_args(argv)
    params = icefront.get_params(args.config)

    name = args.name
    if name is None:
        name = os.path.splitext(os.path.basename(args.filelist))[0]

    with open(args.filelist, 'r') as handle:
        filelist = json.load(handle)

    print(" ")
    print('==================================')
    print(' PROCESSING THE ATL06 DATA (%s)' % name)
    print('==================================')

    atl06_file_name = os.path.join(args.output_path, name + '-profiles.pkl')
    atl06_data = icefront.ingest(filelist, atl06_file_name, args.datapath, args.maskfile,
                                 kdt_file=args.kdt_file, nproc=args.nproc,
                                 overwrite=args.overwrite, verbose=args.verbose)

    print('==================================')
    print(' FINDING THE FRONT AND R-M FEATURES (%s)' % name)
    print('==================================')
    rm_obs = icefront.get_rm_features(atl06_data, params, nproc=args.nproc,
                                      verbose=args.verbose)

    rm_obs_output_file_name = os.path.join(args.output_path, name + '-rm.pkl')
    with open(rm_obs_output_file_name, 'wb') as handle:
        pickle.dump(rm_obs, handle, protocol=pickle.HIGHEST_PROTOCOL)
    print('Wrote file %s' % rm_obs_output_file_name)

    return rm_obs


if __name__ == "__main__":
    main()
