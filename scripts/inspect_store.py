import sys
import datetime
from alignertrack.config import load_config
from alignertrack.data import Database, ScheduleRepository
from alignertrack.export_utils import format_aligner_line
from alignertrack.statistics import summarize_schedule

cfg = load_config()
db = Database(sys.argv[1] if len(sys.argv) > 1 else cfg.get('db_path'))
print('Datenbank:', db.db_path)

print('\nRohdaten:')
for row in db.conn.execute("SELECT key, value FROM store"):
    print(f"  {row['key']}: {row['value'][:200]}")

schedule = ScheduleRepository(db).load()
if schedule is None:
    print('\nKein (lesbarer) Trageplan gespeichert.')
else:
    print('\nTermin:', schedule.appointment_date.isoformat())
    for al in schedule.aligners:
        print(' ', format_aligner_line(al, '%Y-%m-%d'))
    print('\nStatistik:', summarize_schedule(schedule, datetime.date.today()))

print('\nDone')
db.close()
