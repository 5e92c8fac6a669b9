from datetime import date, datetime
from csr_portal.utils import transforms


def test_iso_dates():
    assert transforms.to_iso_date('2025-03-04T10:00:00Z') == '2025-03-04'
    assert transforms.to_iso_date(datetime(2025, 1, 2, 23, 59)) == '2025-01-02'
    assert transforms.to_iso_date(None) == date.today().isoformat()
    assert transforms.to_iso_date('not a date') == date.today().isoformat()
    assert transforms.to_nullable_iso_date('') is None
    assert transforms.to_nullable_iso_date(date(2024, 2, 29)) == '2024-02-29'


def test_safe_number_and_metric_keys():
    assert transforms.safe_number(3.5) == 3.5
    assert transforms.safe_number(float('nan')) == 0
    assert transforms.safe_number('12', fallback=-1) == -1
    assert transforms.safe_number(True) == 0
    assert transforms.normalize_metric_key('  Waste Collected (KG) ') == 'waste_collected_kg'
    assert transforms.normalize_metric_key(None) == ''


def test_map_projects_fallbacks():
    rows = [
        {'id': 'abcdef123456', 'csr_partner_id': 'p1', 'name': 'Water', 'city': 'Pune',
         'created_at': '2024-05-01T08:00:00', 'approved_budget': 900, 'direct_beneficiaries': 40,
         'indirect_beneficiaries': 80, 'expected_end_date': '2025-01-31', 'actual_end_date': '2024-12-15'},
        {'id': 'x', 'csr_partner_id': 'p1'},  # no name
    ]
    [project] = transforms.map_projects(rows)
    assert project['code'] == 'abcdef12'
    assert project['status'] == 'active'
    assert project['location'] == 'Pune'
    assert project['start_date'] == '2024-05-01'
    assert project['end_date'] == '2024-12-15'
    assert project['total_budget'] == 900
    assert project['beneficiaries_current'] == 40
    assert project['beneficiaries_target'] == 80
    assert project['project_metrics'] is None


def test_project_metrics_merge_order():
    row = {
        'id': 'p', 'csr_partner_id': 'c', 'name': 'Trees',
        'targets': {'trees_planted': 1000, 'meals_served': 50},
        'achievements': {'trees_planted': 100},
        'project_metrics': {'meals_served': {'current': 20, 'target': 60}},
        'trees_planted': 300,
    }
    impact = {'p': [
        {'project_id': 'p', 'metric_name': 'Meals Served', 'target_value': 40, 'achieved_value': 10},
        {'project_id': 'p', 'metric_name': 'Wells Dug', 'target_value': 5, 'achieved_value': 2},
    ]}
    [project] = transforms.map_projects([row], impact)
    metrics = project['project_metrics']
    assert metrics['trees_planted'] == {'current': 300, 'target': 1000}
    assert metrics['meals_served'] == {'current': 30, 'target': 100}
    assert metrics['wells_dug'] == {'current': 2, 'target': 5}
    assert [m['key'] for m in project['impact_metrics']] == ['meals_served', 'wells_dug']


def test_map_timelines_colours():
    rows = [
        {'id': 't1', 'project_id': 'p', 'completion_percentage': 100, 'actual_start_date': '2025-01-01'},
        {'id': 't2', 'project_id': 'p', 'status': 'completed'},
        {'id': 't3', 'project_id': 'p', 'completion_percentage': 20},
        {'id': 't4', 'project_id': 'p', 'color': '#000000'},
    ]
    mapped = transforms.map_timelines(rows)
    assert [t['color'] for t in mapped] == ['#10b981', '#10b981', '#8b5cf6', '#000000']
    assert mapped[0]['start_date'] == '2025-01-01'
    assert mapped[0]['end_date'] == '2025-01-01'
    assert mapped[2]['title'] == 'Timeline Phase'


def test_map_reports_date_priority():
    [report] = transforms.map_reports([
        {'id': 'r', 'project_id': 'p', 'report_code': 'RC-1', 'sent_date': '2025-04-01', 'period_to': '2025-03-31'},
    ])
    assert report['date'] == '2025-04-01'
    assert report['title'] == 'RC-1'
    assert report['source'] == 'report'


def test_map_updates_links():
    mapped = transforms.map_updates([
        {'id': 'u1', 'project_id': 'p', 'documents': {'drive_link': 'https://d/1'}, 'date': '2025-01-01'},
        {'id': 'u2', 'project_id': 'p', 'update_no': '7', 'is_public': True},
        {'id': 'u3', 'project_id': 'p'},
    ])
    assert mapped[0]['drive_link'] == 'https://d/1'
    assert mapped[0]['is_downloadable'] is True
    assert mapped[0]['title'] == 'Field Update'
    assert mapped[1]['title'] == 'Update 7'
    assert mapped[1]['is_downloadable'] is True
    assert mapped[2]['is_downloadable'] is False


def test_monthly_rows_become_report_and_update():
    row = {'id': 12, 'project_id': 'p', 'update_number': '4', 'date_of_report': '2025-02-01', 'pdf_link': 'https://d/m4'}
    [report] = transforms.map_monthly_reports([row])
    [update] = transforms.map_monthly_updates([row])
    assert (report['id'], report['title'], report['source']) == ('12', 'Monthly Update 4', 'monthly')
    assert (update['title'], update['source'], update['is_downloadable']) == ('Update 4', 'temp', True)
    [merged] = transforms.map_merged_reports([{'id': 'm', 'project_id': 'p', 'start_date': '2025-01-01'}])
    assert merged['title'] == 'Merged Monthly Report'
    assert merged['date'] == '2025-01-01'


def test_split_media_articles():
    rows = [
        {'id': 1, 'media_type': 'Video', 'drive_folder_link': 'https://d/f'},
        {'id': 2, 'media_type': 'image'},
        {'id': 3, 'media_type': 'photo', 'category': ' News Article '},
        {'id': 4, 'media_type': 'certificate', 'drive_link': 'https://d/c'},
        {'id': 5, 'media_type': 'audio'},
    ]
    split = transforms.split_media_articles(rows)
    assert [(m['id'], m['type']) for m in split['media']] == [(1, 'video'), (2, 'photo')]
    assert split['media'][0]['drive_link'] == 'https://d/f'
    assert [a['id'] for a in split['articles']] == [3, 4]
    assert split['articles'][1]['drive_link'] == 'https://d/c'


def test_calendar_events_and_expenses():
    [event] = transforms.map_calendar_events([{'id': 'e', 'project_id': 'p', 'event_date': '2025-05-05'}])
    assert (event['start_date'], event['end_date'], event['title']) == ('2025-05-05', '2025-05-05', 'Event')
    expenses = transforms.map_expenses([
        {'id': 'a', 'project_id': 'p', 'amount': 10},
        {'id': 'b', 'project_id': 'p', 'total_amount': 5, 'amount': 99},
        {'id': 'c', 'project_id': 'q', 'total_amount': 1},
    ])
    assert transforms.expense_totals(expenses) == {'p': 15, 'q': 1}


def test_sort_newest_first_keeps_undated_last():
    items = [{'id': 1, 'date': None}, {'id': 2, 'date': '2025-01-01'}, {'id': 3, 'date': '2025-06-01'}]
    assert [i['id'] for i in transforms.sort_newest_first(items)] == [3, 2, 1]


def test_malformed_metric_json_is_coalesced():
    rows = [{
        'id': 'p1', 'csr_partner_id': 'c', 'name': 'Odd metrics',
        'project_metrics': {'trees_planted': 5, 'meals_served': None, 'wells_dug': {'current': 3, 'target': 9}},
        'targets': ['trees_planted'],
        'achievements': 'n/a',
    }]
    [project] = transforms.map_projects(rows)
    metrics = project['project_metrics']
    assert metrics['trees_planted'] == {'current': 0, 'target': 0}
    assert metrics['meals_served'] == {'current': 0, 'target': 0}
    assert metrics['wells_dug'] == {'current': 3, 'target': 9}
    [listed] = transforms.map_projects([{**rows[0], 'project_metrics': [1, 2]}])
    assert listed['project_metrics'] is None
