import numpy as np
import pytest

import icefront


def make_profile(heights, direction='D', step=20., x_atc=None, mask=None, quality=None,
                 **meta):
    '''
    Synthetic profile whose corrections are all zero, so with mdt = 0 the height
    above sea surface equals h_li.  None in heights is an invalid segment.
    '''
    h_li = np.array([np.nan if h is None else h for h in heights], dtype=float)
    n = len(h_li)
    i = np.arange(n)
    if x_atc is None:
        x_atc = 1.0e7 + step * i
    lat_step = 1.8e-4 if direction == 'A' else -1.8e-4
    profile = {
        'x': -2.5e5 + step * i,
        'y': -1.2e6 + 0. * i,
        'lat': -78. + lat_step * i,
        'lon': -170. + 0. * i,
        'x_atc': np.asarray(x_atc, dtype=float),
        'h_li': h_li,
        'geoid_h': np.zeros(n),
        'tide_ocean': np.zeros(n),
        'dac': np.zeros(n),
        'mask': np.full(n, icefront.ICE_SHELF) if mask is None else np.asarray(mask),
        'quality': np.zeros(n, dtype=int) if quality is None else np.asarray(quality),
        'delta_time': 5.0e7 + 0.003 * i,
        'direction': direction,
        'beam': 'gt1r',
        'beam_type': 'strong',
        'cycle': '05',
        'track': '0307',
        'region': '11',
        'file': 'ATL06_20191015123456_03070511_005_01.h5',
    }
    profile.update(meta)
    return profile


def mirror(profile):
    '''
    Reverse the segment order and flip the track node, keeping x_atc increasing.
    '''
    out = dict(profile)
    for key in icefront.PROFILE_ARRAYS:
        if key != 'x_atc':
            out[key] = np.asarray(profile[key])[::-1]
    out['direction'] = {'A': 'D', 'D': 'A'}[profile['direction']]
    return out


@pytest.fixture
def params():
    return icefront.get_params(mdt=0.)


@pytest.fixture
def profile_factory():
    return make_profile


@pytest.fixture
def mirror_profile():
    return mirror


@pytest.fixture
def scenario():
    '''
    Descending profile: ocean at index 1, front jump to index 2, a moat of 10 m at
    index 5 and a 55 m high point seaward of the front at index 0.
    '''
    heights = [55., 0.5, 50.5, 45., 30., 10., 35., 40., 40., 40.]
    return make_profile(heights, direction='D')
