import logging
from rq import Worker
from dailyquiz.jobs.queue import redis
from dailyquiz.core.config import LOG_LEVEL, RQ_QUEUE
if __name__ == "__main__":
    logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO),
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    w = Worker([RQ_QUEUE], connection=redis)
    w.work(with_scheduler=True)
