import os
import json
import pickle

import h5py
import numpy as np
import pandas as pd
import pytest
from netCDF4 import Dataset
from pyproj import Transformer

import icefront
import make_catalog


GRANULE = 'ATL06_20191015123456_03070511_005_01.h5'
N_FRONT = 40


def front_beam():
    '''
    Ascending beam along 170W: ice shelf for the first 20 segments, ocean after.
    '''
    i = np.arange(N_FRONT)
    lat = -78.0 + 1.8e-4 * i
    lon = np.full(N_FRONT, -170.)
    h_li = np.where(i < 20, 40., -1.)
    h_li[15:19] = [38., 30., 34., 39.]
    return lat, lon, h_li


def write_beam(fid, beam, lat, lon, h_li, quality=None):
    n = len(lat)
    base = '%s/land_ice_segments/' % beam
    fid.create_dataset(base + 'latitude', data=lat)
    fid.create_dataset(base + 'longitude', data=lon)
    fid.create_dataset(base + 'h_li', data=h_li.astype(np.float32))
    fid.create_dataset(base + 'atl06_quality_summary',
                       data=np.zeros(n, dtype=np.int8) if quality is None else quality)
    fid.create_dataset(base + 'delta_time', data=5.5e7 + 0.003 * np.arange(n))
    fid.create_dataset(base + 'ground_track/x_atc', data=2.0e7 + 20. * np.arange(n))
    fid.create_dataset(base + 'dem/geoid_h', data=np.zeros(n, dtype=np.float32))
    fid.create_dataset(base + 'geophysical/tide_ocean', data=np.zeros(n, dtype=np.float32))
    fid.create_dataset(base + 'geophysical/dac', data=np.zeros(n, dtype=np.float32))


@pytest.fixture
def granule(tmp_path):
    with h5py.File(tmp_path / GRANULE, 'w') as fid:
        fid.create_dataset('orbit_info/sc_orient', data=np.array([1], dtype=np.int8))
        write_beam(fid, 'gt1l', *front_beam())
        lat = -78.2 - 1.8e-4 * np.arange(5)
        write_beam(fid, 'gt2r', lat, np.full(5, -170.), np.full(5, 40.))
    return tmp_path


@pytest.fixture
def maskfile(tmp_path):
    '''
    Polar stereographic grid around the front beam: floating ice (3) south of the
    midpoint between segments 19 and 20, ocean (0) north of it.
    '''
    lat, lon, _ = front_beam()
    transformer = Transformer.from_crs("EPSG:4326", "EPSG:3031")
    [x, y] = transformer.transform(lat, lon)
    r_split = 0.5 * (np.hypot(x[19], y[19]) + np.hypot(x[20], y[20]))

    gx = np.linspace(x.min() - 200., x.max() + 200., 80)
    gy = np.linspace(y.min() - 200., y.max() + 200., 80)
    (xm, ym) = np.meshgrid(gx, gy)
    mask = np.where(np.hypot(xm, ym) < r_split, 3, 0).astype(np.int8)

    path = tmp_path / 'mask.nc'
    with Dataset(path, mode='w') as fh:
        fh.createDimension('x', len(gx))
        fh.createDimension('y', len(gy))
        fh.createVariable('x', 'f8', ('x',))[:] = gx
        fh.createVariable('y', 'f8', ('y',))[:] = gy
        fh.createVariable('mask', 'i1', ('y', 'x'))[:] = mask
    return str(path)


def test_beam_type():
    assert icefront.beam_type('gt1r', 1) == 'strong'
    assert icefront.beam_type('gt1l', 1) == 'weak'
    assert icefront.beam_type('gt2l', 0) == 'strong'
    assert icefront.beam_type('gt2r', 0) == 'weak'
    assert icefront.beam_type('gt3r', 2) == 'transition'


def test_track_direction():
    assert icefront.track_direction([-78., -77.9]) == 'A'
    assert icefront.track_direction([-77.9, -78.]) == 'D'
    assert icefront.track_direction([-78.]) is None


def test_crosses_front():
    assert icefront.crosses_front([0, 0, 2, 2])
    assert icefront.crosses_front([2, 2, 0, 0])
    assert not icefront.crosses_front([2, 2, 1, 0])
    assert not icefront.crosses_front([2, 2, 1, 1])
    assert not icefront.crosses_front([])


def test_load_one_file(granule):
    profiles = icefront.load_one_file(str(granule), False, GRANULE)
    assert [p['beam'] for p in profiles] == ['gt1l', 'gt2r']

    front = profiles[0]
    assert front['direction'] == 'A'
    assert front['beam_type'] == 'weak'
    assert (front['product'], front['track'], front['cycle'], front['region']) == \
        ('ATL06', '0307', '05', '11')
    assert front['file'] == GRANULE
    assert len(front['h_li']) == N_FRONT
    assert front['h_li'][0] == pytest.approx(40.)

    assert profiles[1]['direction'] == 'D'
    assert profiles[1]['beam_type'] == 'strong'


def test_load_one_file_missing(tmp_path):
    assert icefront.load_one_file(str(tmp_path), False, 'missing.h5') == []


def test_load_mask_and_apply(maskfile, tmp_path):
    kdt_file = str(tmp_path / 'mask-ckdt.pkl')
    tree, mask = icefront.load_mask(maskfile, kdt_file)
    assert os.path.exists(kdt_file)
    assert mask.shape == (80 * 80,)

    cached_tree, _ = icefront.load_mask(maskfile, kdt_file)
    assert cached_tree.n == tree.n

    lat, lon, h_li = front_beam()
    transformer = Transformer.from_crs("EPSG:4326", "EPSG:3031")
    row = icefront.apply_mask(transformer, tree, mask, {'lat': lat, 'lon': lon, 'h_li': h_li})
    assert len(row['x']) == N_FRONT
    assert row['mask'][0] == icefront.ICE_SHELF
    assert row['mask'][-1] == icefront.OCEAN
    assert icefront.crosses_front(row['mask'])
    assert row['h_li'] is h_li


def test_ingest_and_detect(granule, maskfile, tmp_path):
    output = str(tmp_path / 'profiles.pkl')
    atl06_data = icefront.ingest([GRANULE], output, str(granule), maskfile, nproc=1)

    assert isinstance(atl06_data, pd.DataFrame)
    assert list(atl06_data['beam']) == ['gt1l']
    with open(output, 'rb') as handle:
        assert len(pickle.load(handle)) == 1

    # second call reuses the saved profiles
    again = icefront.ingest(['missing.h5'], output, str(granule), maskfile, nproc=1)
    assert list(again['beam']) == ['gt1l']

    rm_obs = icefront.get_rm_features(atl06_data)
    row = rm_obs.iloc[0]
    assert row['found']
    assert row['index_a'] == 20 and row['index_b'] == 19
    assert row['h_b'] == pytest.approx(41.4, abs=1e-4)
    assert row['rm_flag']
    assert row['moat_index'] == 16
    assert row['rampart_index'] == 19
    assert row['dh_rm'] == pytest.approx(41.4 - 31.4, abs=1e-4)
    assert row['track_node'] == 1 and row['cycle_number'] == 5


def test_make_catalog(granule, maskfile, tmp_path):
    filelist = tmp_path / 'ross-list.json'
    filelist.write_text(json.dumps([GRANULE]))
    config = tmp_path / 'ross.json'
    config.write_text(json.dumps({'mdt': -1.4}))

    rm_obs = make_catalog.main([str(filelist), '--datapath', str(granule),
                                '--maskfile', maskfile, '--output-path', str(tmp_path),
                                '--config', str(config), '--nproc', '1'])

    assert os.path.exists(tmp_path / 'ross-list-profiles.pkl')
    with open(tmp_path / 'ross-list-rm.pkl', 'rb') as handle:
        saved = pickle.load(handle)
    pd.testing.assert_frame_equal(saved, rm_obs)
    assert bool(rm_obs['rm_flag'][0])
