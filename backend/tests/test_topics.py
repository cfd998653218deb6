import random

from debate.services.lobbies.topics import DEFAULT_TOPICS, TopicPool, load_topics


def test_load_topics_trims_and_drops_blank_lines(tmp_path):
    path = tmp_path / 'topics.txt'
    path.write_text('  First topic  \n\n Second topic\nFirst topic\n   \n', encoding='utf-8')
    pool = load_topics(str(path))
    assert list(pool) == ['First topic', 'Second topic']


def test_missing_file_falls_back_to_builtin_list(tmp_path):
    pool = load_topics(str(tmp_path / 'missing.txt'))
    assert list(pool) == list(DEFAULT_TOPICS)
    assert len(pool) >= 10


def test_empty_file_falls_back_to_builtin_list(tmp_path):
    path = tmp_path / 'topics.txt'
    path.write_text('\n\n', encoding='utf-8')
    assert list(load_topics(str(path))) == list(DEFAULT_TOPICS)


def test_pick_only_returns_unused_topics():
    pool = TopicPool(['a', 'b', 'c'])
    rng = random.Random(3)
    used = []
    for _ in range(3):
        topic = pool.pick(used, rng)
        assert topic not in used
        used.append(topic)
    assert sorted(used) == ['a', 'b', 'c']
    assert pool.pick(used, rng) is None


def test_undecodable_file_falls_back_to_builtin_list(tmp_path):
    path = tmp_path / 'topics.txt'
    path.write_bytes(b'Caf\xe9 culture is overrated\n')
    assert list(load_topics(str(path))) == list(DEFAULT_TOPICS)
