import os
import re
import json
import pickle
import warnings
import datetime
import time as t
from collections import namedtuple
from functools import partial
from multiprocessing import Pool

import h5py
import numpy as np
import pandas as pd
import dateutil.parser as dparser
from netCDF4 import Dataset
from pyproj import Transformer
from scipy.spatial import cKDTree


'''
Profile mask classes.  BedMachine uses 0 = ocean, 1 = ice-free land,
2 = grounded ice, 3 = floating ice, 4 = subglacial lake; profiles carry the
reduced classification below.
'''
OCEAN = 0
GROUNDED = 1
ICE_SHELF = 2
BEDMACHINE_TO_PROFILE = np.array([OCEAN, GROUNDED, GROUNDED, ICE_SHELF, GROUNDED])

# ATL06 float fill value is 3.4028235e+38
FILL_VALUE = 3.0e38

BEAMS = ('gt1l', 'gt1r', 'gt2l', 'gt2r', 'gt3l', 'gt3r')

# ATL06_[yyyymmdd][hhmmss]_[ttttccss]_[vvv]_[rr].h5
ATL06_PATTERN = re.compile(r'(ATL\d{2})_(\d{14})_(\d{4})(\d{2})(\d{2})_(\d{3})_(\d{2})')

# landward index step for each track node
LANDWARD_STEP = {'A': -1, 'D': 1}
TRACK_NODE = {'A': 1, 'D': 2}

PROFILE_ARRAYS = ('x', 'y', 'lat', 'lon', 'x_atc', 'h_li', 'geoid_h', 'tide_ocean',
                  'dac', 'mask', 'quality', 'delta_time')
PROFILE_META = ('file', 'beam', 'beam_type', 'cycle', 'track', 'region', 'direction')

DEFAULT_PARAMS = {
    'mdt': -1.4,                        # constant mean dynamic topography (m)
    'h_ss_low': -5.,                    # lowest allowable height above sea surface (m)
    'h_ss_high': 100.,                  # highest allowable height above sea surface (m)
    'h_a_upper_limit': 2.,              # upper limit of the ocean point in the front jump
    'h_diff_lower_limit': 10.,          # lower limit of the front jump height
    'h_diff_upper_limit': 100.,         # upper limit of the front jump height
    'jump_x_dist_upper_limit': 80.,     # upper limit of the along-track gap of the jump
    'moat_h_lower_limit': 2.,           # moat must stay above sea level
    'moat_search_dist': 2000.,          # distance from point B to search for a moat
    'rampart_max_search_dist': 100.,    # distance from point B to search for a higher rampart
    'rampart_search_direction': 'seaward',
    'step_size': 20.,                   # ATL06 segment spacing
    'ref_time': '2018-01-01T00:00:00',  # epoch of delta_time
}

SegmentPoint = namedtuple('SegmentPoint',
                          ['index', 'h', 'x_dist', 'x_atc', 'lat', 'lon', 'x', 'y',
                           'delta_time', 'time'])
FrontCrossing = namedtuple('FrontCrossing', ['found', 'point_a', 'point_b', 'h_diff', 'x_gap'])
RampartMoat = namedtuple('RampartMoat', ['rm_flag', 'moat', 'rampart'])
RMMetrics = namedtuple('RMMetrics', ['dh', 'dx', 'time'])

NO_FRONT = FrontCrossing(False, None, None, None, None)
NO_RM = RampartMoat(False, None, None)
NO_METRICS = RMMetrics(None, None, None)

RECORD_COLUMNS = (
    list(PROFILE_META) + ['track_node', 'cycle_number', 'found', 'h_diff', 'x_gap']
    + ['%s_a' % f for f in SegmentPoint._fields]
    + ['%s_b' % f for f in SegmentPoint._fields]
    + ['rm_flag']
    + ['moat_%s' % f for f in SegmentPoint._fields]
    + ['rampart_%s' % f for f in SegmentPoint._fields]
    + ['dh_rm', 'dx_rm', 'time_rm']
)


def get_params(config_file=None, **overrides):
    '''
    Build the detection parameters.  Values in config_file (a JSON mapping) replace
    DEFAULT_PARAMS, and keyword overrides replace both.  ref_time is parsed into a
    datetime.  Raises ValueError for unknown names or inconsistent values.
    '''
    params = dict(DEFAULT_PARAMS)
    updates = {}
    if config_file is not None:
        with open(config_file, 'r') as handle:
            updates.update(json.load(handle))
    updates.update(overrides)

    unknown = sorted(set(updates) - set(DEFAULT_PARAMS))
    if unknown:
        raise ValueError('Unknown parameter(s): %s' % ', '.join(unknown))
    params.update(updates)

    if params['h_ss_low'] > params['h_ss_high']:
        raise ValueError('h_ss_low (%s) is above h_ss_high (%s)'
                         % (params['h_ss_low'], params['h_ss_high']))
    if params['h_diff_lower_limit'] >= params['h_diff_upper_limit']:
        raise ValueError('h_diff_lower_limit must be below h_diff_upper_limit')
    for key in ('step_size', 'moat_search_dist', 'rampart_max_search_dist',
                'jump_x_dist_upper_limit'):
        if params[key] <= 0:
            raise ValueError('%s must be positive, got %s' % (key, params[key]))
    if params['rampart_search_direction'] not in ('seaward', 'landward'):
        raise ValueError("rampart_search_direction must be 'seaward' or 'landward'")

    if not isinstance(params['ref_time'], datetime.datetime):
        params['ref_time'] = dparser.parse(str(params['ref_time']))

    return params


#------------------------
# Ingest


def beam_type(beam, sc_orient):
    '''
    Strong/weak beam from the spacecraft orientation (0 = backward, 1 = forward,
    2 = transition).
    '''
    if sc_orient == 1:
        return 'strong' if beam.endswith('r') else 'weak'
    elif sc_orient == 0:
        return 'strong' if beam.endswith('l') else 'weak'
    return 'transition'


def track_direction(lat):
    '''
    'A' if the track moves north between its first two segments, 'D' if south,
    None if there are not enough segments to tell.
    '''
    if len(lat) < 2:
        return None
    return 'A' if lat[1] - lat[0] > 0 else 'D'


def load_one_file(datapath, verbose, f):
    '''
    Read the six beams of one ATL06 granule.  Returns a list of profile dictionaries,
    one per beam that has land ice segments.  Missing files and beams are reported
    and skipped.
    '''
    if verbose:
        print('     Opening local file %s' % f)

    granule = ATL06_PATTERN.search(os.path.basename(f))
    if granule:
        product, _, track, cycle, region, _, _ = granule.groups()
    else:
        product, track, cycle, region = None, None, None, None

    try:
        fid = h5py.File(os.path.join(datapath, f), mode='r')
    except (FileNotFoundError, OSError):
        print('     ERROR: File not found,  %s' % f)
        return []

    profiles = []
    with fid:
        try:
            sc_orient = int(fid['/orbit_info/sc_orient'][0])
        except KeyError:
            print('     ERROR: no spacecraft orientation, %s' % f)
            return []

        for beam in BEAMS:
            base = '%s/land_ice_segments/' % beam
            try:
                profile = {
                    'lat':        np.array(fid[base + 'latitude'][:]),
                    'lon':        np.array(fid[base + 'longitude'][:]),
                    'h_li':       np.array(fid[base + 'h_li'][:], dtype=float),
                    'quality':    np.array(fid[base + 'atl06_quality_summary'][:]),
                    'delta_time': np.array(fid[base + 'delta_time'][:]),
                    'x_atc':      np.array(fid[base + 'ground_track/x_atc'][:]),
                    'geoid_h':    np.array(fid[base + 'dem/geoid_h'][:], dtype=float),
                    'tide_ocean': np.array(fid[base + 'geophysical/tide_ocean'][:], dtype=float),
                    'dac':        np.array(fid[base + 'geophysical/dac'][:], dtype=float),
                }
            except KeyError:
                if verbose:
                    print('     no data beam: %s' % beam)
                continue

            profile['direction'] = track_direction(profile['lat'])
            profile['beam'] = beam
            profile['beam_type'] = beam_type(beam, sc_orient)
            profile['product'] = product
            profile['track'] = track
            profile['cycle'] = cycle
            profile['region'] = region
            profile['file'] = os.path.basename(f)
            profiles.append(profile)

    return profiles


def load_mask(maskfile, kdt_file=None, verbose=False):
    '''
    Load a BedMachine-style mask.  We use a KD-Tree for the nearest-neighbor search;
    the tree is slow to build for the full continent, so it is pickled to kdt_file
    and reused when that file exists.

    Returns (tree, mask) where mask is flattened in the same order as the tree.
    '''
    ttstart = t.perf_counter()
    with Dataset(maskfile, mode='r') as fh:
        x = np.array(fh.variables['x'][:])
        y = np.array(fh.variables['y'][:])
        mask = np.array(fh.variables['mask'][:])

    if kdt_file is not None and os.path.exists(kdt_file):
        if verbose:
            print('     Loading existing ckdt.')
        with open(kdt_file, 'rb') as handle:
            tree = pickle.load(handle)
    else:
        if verbose:
            print('     Constructing new ckdt.')
        (xm, ym) = np.meshgrid(x, y)
        tree = cKDTree(np.column_stack((xm.flatten(), ym.flatten())))
        if kdt_file is not None:
            with open(kdt_file, 'wb') as handle:
                pickle.dump(tree, handle)
    if verbose:
        print('     Mask loaded after %f s' % (t.perf_counter() - ttstart))

    return tree, mask.flatten()


def apply_mask(transformer, tree, mask, row):
    '''
    Project one profile to polar stereographic coordinates and attach the mask
    class (OCEAN, GROUNDED or ICE_SHELF) of the nearest mask cell to every segment.
    '''
    [h_x, h_y] = transformer.transform(np.asarray(row['lat']), np.asarray(row['lon']))
    h_x = np.atleast_1d(h_x)
    h_y = np.atleast_1d(h_y)
    nothing, inds = tree.query(np.column_stack((h_x, h_y)), k=1)
    this_mask = np.clip(np.asarray(mask[inds], dtype=int), 0, len(BEDMACHINE_TO_PROFILE) - 1)

    new_row = dict(row)
    new_row['x'] = h_x
    new_row['y'] = h_y
    new_row['mask'] = BEDMACHINE_TO_PROFILE[this_mask]
    return new_row


def crosses_front(mask):
    '''
    True if adjacent segments jump between ocean and ice shelf.
    '''
    mask = np.asarray(mask, dtype=int)
    return bool(np.any(np.abs(np.diff(mask)) > 1))


def ingest(file_list, output_file_name, datapath, maskfile, kdt_file=None,
           nproc=8, min_segments=10, overwrite=False, verbose=False):
    '''
    Organize a bunch of ATL06 H5 files into a DataFrame of ground track profiles and
    save the result.  Only beams that cross the ice-shelf front (ocean to ice shelf
    in the mask) are kept.

    file_list is the list of granule names, relative to datapath.
    output_file_name is where the pickled DataFrame is stored.  If it already
    exists it is loaded and returned unless overwrite is set.
    maskfile is a BedMachine-style netCDF mask.
    '''
    if os.path.isfile(output_file_name) and not overwrite:
        print("Data already saved, so there's no need to ingest data.")
        print("Current filename is: %s" % output_file_name)
        with open(output_file_name, 'rb') as handle:
            return pickle.load(handle)

    print('Working on the mask...')
    tree, mask = load_mask(maskfile, kdt_file, verbose)

    '''
    Read all the files in parallel.  The KD-Tree is not passed to the workers; the
    mask is applied afterwards.
    '''
    ttstart = t.perf_counter()
    func = partial(load_one_file, datapath, verbose)
    if nproc > 1:
        with Pool(nproc) as p:
            granules = p.map(func, file_list)
    else:
        granules = list(map(func, file_list))
    profiles = [profile for granule in granules for profile in granule]
    print('Time to read the H5 files: ', t.perf_counter() - ttstart)

    # Delete profiles with too few segments
    profiles = [p for p in profiles if np.size(p['h_li']) >= min_segments]

    ttstart = t.perf_counter()
    transformer = Transformer.from_crs("EPSG:4326", "EPSG:3031")
    profiles = [apply_mask(transformer, tree, mask, p) for p in profiles]
    profiles = [p for p in profiles if crosses_front(p['mask'])]
    print('Time to apply ice shelf mask: ', t.perf_counter() - ttstart)
    print('Kept %i profiles crossing the ice front.' % len(profiles))

    output = pd.DataFrame(profiles)

    ttstart = t.perf_counter()
    with open(output_file_name, 'wb') as handle:
        pickle.dump(output, handle)
    print('Time to save all of the data: ', t.perf_counter() - ttstart)

    return output


#------------------------
# Cleaning and corrections


def clean_profile(profile):
    '''
    Invalidate h_li over grounded ice, where the quality summary flags a possible
    problem, and where h_li or delta_time is a fill value.  Returns a masked array;
    no segment is removed so that indices stay valid along track.
    '''
    h_li = np.asarray(profile['h_li'], dtype=float)
    with np.errstate(invalid='ignore'):
        bad = ~np.isfinite(h_li) | (h_li > FILL_VALUE)
        delta_time = np.asarray(profile['delta_time'], dtype=float)
        bad |= ~np.isfinite(delta_time) | (np.abs(delta_time) > FILL_VALUE)
    bad |= np.asarray(profile['mask']) == GROUNDED
    bad |= np.asarray(profile['quality']) == 1
    return np.ma.array(h_li, mask=bad)


def correct_heights(profile, h_li, params):
    '''
    Convert h_li to height above the instantaneous sea surface,

        h_ss = h_li - geoid - ocean tide - dac - mdt

    and drop values outside [h_ss_low, h_ss_high].  Also returns x_dist, the
    along-track distance from the first segment, which is kept for every segment.
    '''
    with np.errstate(invalid='ignore', over='ignore'):
        h_ss = (np.ma.getdata(h_li)
                - np.asarray(profile['geoid_h'], dtype=float)
                - np.asarray(profile['tide_ocean'], dtype=float)
                - np.asarray(profile['dac'], dtype=float)
                - params['mdt'])
        invalid = np.ma.getmaskarray(h_li) | ~np.isfinite(h_ss)
        invalid |= (h_ss < params['h_ss_low']) | (h_ss > params['h_ss_high'])

    x_atc = np.asarray(profile['x_atc'], dtype=float)
    x_dist = x_atc - x_atc[0] if len(x_atc) else x_atc.copy()

    return np.ma.array(h_ss, mask=invalid), x_dist


def prepare_profile(profile, params):
    '''
    Clean and correct one profile.  Returns a dictionary with the per-segment arrays,
    the metadata, h_ss and x_dist, or None if the per-segment arrays do not have a
    common length.
    '''
    prof = {key: np.asarray(profile[key]) for key in PROFILE_ARRAYS}
    lengths = set(len(v) for v in prof.values())
    if len(lengths) > 1:
        warnings.warn('Skipping %s %s: per-segment arrays have different lengths'
                      % (profile.get('file'), profile.get('beam')))
        return None
    for key in PROFILE_META:
        prof[key] = profile.get(key)

    h_li = clean_profile(prof)
    prof['h_ss'], prof['x_dist'] = correct_heights(prof, h_li, params)
    return prof


#------------------------
# Direction handling


def landward_step(direction):
    '''
    +1 if landward is toward higher indices (descending), -1 if toward lower indices
    (ascending), None for an unrecognized direction.
    '''
    return LANDWARD_STEP.get(direction)


def seaward_order(h_ss, direction):
    '''
    Physical indices of the valid segments ordered from the most seaward segment to
    the most landward one, or None for an unrecognized direction.
    '''
    step = landward_step(direction)
    if step is None:
        return None
    valid = np.flatnonzero(~np.ma.getmaskarray(h_ss))
    return valid if step > 0 else valid[::-1]


def segment_point(prof, index, ref_time):
    delta_time = float(prof['delta_time'][index])
    return SegmentPoint(
        index=int(index),
        h=float(prof['h_ss'][index]),
        x_dist=float(prof['x_dist'][index]),
        x_atc=float(prof['x_atc'][index]),
        lat=float(prof['lat'][index]),
        lon=float(prof['lon'][index]),
        x=float(prof['x'][index]),
        y=float(prof['y'][index]),
        delta_time=delta_time,
        time=ref_time + datetime.timedelta(seconds=delta_time),
    )


#------------------------
# Front detection


def detect_front(prof, params, verbose=False):
    '''
    Move landward from the most seaward valid segment and return the first pair of
    adjacent valid segments (A, B) that looks like the ice front:

        h_ss(A) < h_a_upper_limit
        h_diff_lower_limit < |h_ss(B) - h_ss(A)| < h_diff_upper_limit
        |x_atc(B) - x_atc(A)| < jump_x_dist_upper_limit

    The along-track condition rejects jumps across data gaps.  Returns NO_FRONT if no
    pair qualifies or the profile can't be scanned.
    '''
    order = seaward_order(prof['h_ss'], prof['direction'])
    if order is None:
        if verbose:
            print('unrecognized direction %r - skipping' % (prof['direction'],))
        return NO_FRONT
    if len(order) < 2:
        return NO_FRONT

    h = np.ma.getdata(prof['h_ss'])
    x_atc = prof['x_atc']

    for ia, ib in zip(order[:-1], order[1:]):
        if h[ia] >= params['h_a_upper_limit']:
            continue
        h_diff = abs(h[ib] - h[ia])
        if not params['h_diff_lower_limit'] < h_diff < params['h_diff_upper_limit']:
            continue
        x_gap = abs(x_atc[ib] - x_atc[ia])
        if x_gap < params['jump_x_dist_upper_limit']:
            if verbose:
                print('front found')
            return FrontCrossing(True,
                                 segment_point(prof, ia, params['ref_time']),
                                 segment_point(prof, ib, params['ref_time']),
                                 float(h_diff), float(x_gap))

    return NO_FRONT


#------------------------
# Rampart-moat detection


def search_window(prof, index_b, step, search_dist, step_size, verbose=False):
    '''
    Yield the physical indices of the valid segments reached by stepping from
    index_b in the direction of step (+1 or -1), at most
    int(search_dist / step_size) + 1 steps and strictly closer than search_dist
    along track.  Stepping past either end of the profile ends the window.
    '''
    h_ss = prof['h_ss']
    x_dist = prof['x_dist']
    invalid = np.ma.getmaskarray(h_ss)
    n_steps = int(search_dist // step_size) + 1

    for j in range(1, n_steps + 1):
        idx = index_b + step * j
        if idx < 0 or idx >= len(h_ss):
            if verbose:
                print('short beam')
            return
        if abs(x_dist[idx] - x_dist[index_b]) >= search_dist:
            continue
        if invalid[idx]:
            continue
        yield idx


def find_moat(prof, index_b, step, params, verbose=False):
    '''
    Follow the first depression landward of point B.  A segment is taken as the new
    moat minimum only while heights keep decreasing and stay above
    moat_h_lower_limit; the first segment that doesn't ends the search, so a deeper
    low beyond an intervening rise is never reached.

    Returns the physical index of the moat, or None.
    '''
    h = np.ma.getdata(prof['h_ss'])
    h_min = h[index_b]
    moat = None
    for idx in search_window(prof, index_b, step, params['moat_search_dist'],
                             params['step_size'], verbose):
        if params['moat_h_lower_limit'] < h[idx] < h_min:
            h_min = h[idx]
            moat = idx
        else:
            break
    return moat


def find_rampart(prof, index_b, step, params, verbose=False):
    '''
    Highest segment within rampart_max_search_dist of point B, point B itself if
    nothing is higher.
    '''
    h = np.ma.getdata(prof['h_ss'])
    h_max = h[index_b]
    rampart = index_b
    for idx in search_window(prof, index_b, step, params['rampart_max_search_dist'],
                             params['step_size'], verbose):
        if h[idx] > h_max:
            h_max = h[idx]
            rampart = idx
    return rampart


def detect_rampart_moat(prof, front, params, verbose=False):
    '''
    Search a profile with a detected front for a rampart-moat structure.  The moat
    is searched landward of point B; the rampart is only searched once a moat is
    found, seaward of point B by default or landward with
    rampart_search_direction = 'landward'.
    '''
    if not front.found:
        return NO_RM
    step = landward_step(prof['direction'])
    if step is None:
        return NO_RM

    index_b = front.point_b.index
    moat = find_moat(prof, index_b, step, params, verbose)
    if moat is None:
        return NO_RM

    if params['rampart_search_direction'] == 'seaward':
        step = -step
    rampart = find_rampart(prof, index_b, step, params, verbose)

    return RampartMoat(True,
                       segment_point(prof, moat, params['ref_time']),
                       segment_point(prof, rampart, params['ref_time']))


def rm_metrics(rm, ref_time):
    '''
    dh_rm (rampart height above the moat), dx_rm (signed along-track distance from
    the moat to the rampart) and time_rm (centre time of the feature).
    '''
    if not rm.rm_flag:
        return NO_METRICS

    dh = rm.rampart.h - rm.moat.h
    if not dh > 0:
        warnings.warn('Skipping metrics: rampart (%f m) is not above moat (%f m)'
                      % (rm.rampart.h, rm.moat.h))
        return NO_METRICS
    dx = rm.rampart.x_dist - rm.moat.x_dist
    average_time = (rm.rampart.delta_time + rm.moat.delta_time) / 2
    return RMMetrics(dh, dx, ref_time + datetime.timedelta(seconds=average_time))


#------------------------
# Catalog


def flatten_point(point, fmt):
    return {fmt % name: (None if point is None else getattr(point, name))
            for name in SegmentPoint._fields}


def make_record(profile, front, rm, metrics):
    '''
    One flat output record per profile.  Absent values are None.
    '''
    record = {key: profile.get(key) for key in PROFILE_META}
    record['track_node'] = TRACK_NODE.get(record['direction'], 0)
    try:
        record['cycle_number'] = int(record['cycle'])
    except (TypeError, ValueError):
        record['cycle_number'] = None

    record['found'] = front.found
    record['h_diff'] = front.h_diff
    record['x_gap'] = front.x_gap
    record.update(flatten_point(front.point_a, '%s_a'))
    record.update(flatten_point(front.point_b, '%s_b'))

    record['rm_flag'] = rm.rm_flag
    record.update(flatten_point(rm.moat, 'moat_%s'))
    record.update(flatten_point(rm.rampart, 'rampart_%s'))
    record['dh_rm'] = metrics.dh
    record['dx_rm'] = metrics.dx
    record['time_rm'] = metrics.time
    return record


def process_profile(params, verbose, profile):
    '''
    Run the full chain on one profile: clean, correct, find the front, find the
    rampart-moat structure and compute its metrics.
    '''
    if verbose:
        print('')
        print('processing:')
        print('track: %s  cycle: %s  beam: %s' % (profile.get('track'), profile.get('cycle'),
                                                  profile.get('beam')))

    prof = prepare_profile(profile, params)
    if prof is None:
        return make_record(profile, NO_FRONT, NO_RM, NO_METRICS)

    front = detect_front(prof, params, verbose)
    rm = detect_rampart_moat(prof, front, params, verbose)
    metrics = rm_metrics(rm, params['ref_time'])
    return make_record(prof, front, rm, metrics)


def get_rm_features(atl06_data, params=None, nproc=1, verbose=False):
    '''
    icefront.get_rm_features

    INPUT: atl06_data, a DataFrame (or list of dictionaries) with each "row" being one
            ground track profile, as produced by icefront.ingest().
           params, detection parameters from get_params(); defaults if None.
           nproc, number of worker processes.  Profiles are independent.

    OUTPUT: rm_obs, a DataFrame with one row per profile.  The columns are given in
            RECORD_COLUMNS:

            found         - whether the ice front was found
            h_a, h_b      - height above sea surface of the ocean (a) and ice-shelf (b)
                            points of the front jump
            h_diff, x_gap - height difference and along-track gap of the jump
            *_a, *_b      - index, x_dist, x_atc, lat, lon, x, y, delta_time, time
                            of points a and b
            rm_flag       - whether a rampart-moat structure was found
            moat_*, rampart_* - the same fields for the moat minimum and rampart maximum
            dh_rm         - rampart height above the moat
            dx_rm         - rampart along-track distance minus moat along-track distance
            time_rm       - centre time of the rampart-moat structure
            track_node    - 1 = ascending, 2 = descending, 0 = unknown
            cycle_number  - cycle as an integer
    '''
    if params is None:
        params = get_params()
    if isinstance(atl06_data, pd.DataFrame):
        rows = atl06_data.to_dict('records')
    else:
        rows = list(atl06_data)

    ttstart = t.perf_counter()
    func = partial(process_profile, params, verbose)
    if nproc > 1:
        with Pool(nproc) as p:
            records = p.map(func, rows)
    else:
        records = list(map(func, rows))

    rm_obs = pd.DataFrame(records, columns=RECORD_COLUMNS)

    print(' ')
    print('Found %i ice front crossings in %i profiles.' % (rm_obs['found'].sum(), len(rm_obs)))
    print('Found %i rampart-moat structures.' % rm_obs['rm_flag'].sum())
    print('Time to detect features:', t.perf_counter() - ttstart)

    return rm_obs
